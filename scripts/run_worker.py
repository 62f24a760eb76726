"""
Run the location enrichment worker.

Usage:
    python scripts/run_worker.py [--consumer-name NAME] [--batch-size N]
"""
import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from src.geoenrich.worker.bootstrap import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
