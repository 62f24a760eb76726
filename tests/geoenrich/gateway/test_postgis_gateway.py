"""
Unit tests for the PostGIS gateway

Statements are compiled against the PostgreSQL dialect; no database is needed.
"""
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import exc
from sqlalchemy.dialects import postgresql

from src.geoenrich.exceptions import GatewayQueryError, GatewayUnavailableError
from src.geoenrich.gateway.postgis import PlanCompiler, PostGISSpatialGateway
from src.geoenrich.models.boundary import AdminBoundary
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.models.transit import TransitMode, TransitStop
from src.geoenrich.transit.priority import LINE_MODES

POINTS = [GeoPoint(41.3874, 2.1686), GeoPoint(40.4168, -3.7038)]


def compile_sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect())).lower()


@pytest.fixture
def gateway():
    return PostGISSpatialGateway(MagicMock())


class TestPlanCompiler:
    """Tests for plan to SQL translation"""

    def test_boundary_statement(self, gateway):
        sql = compile_sql(gateway.compiler.statement(gateway.boundary_plan(), POINTS))

        assert "from (values" in sql or "values (" in sql
        assert "st_expand(" in sql
        assert "&&" in sql
        assert "st_contains(admin_boundaries.geom" in sql
        assert "admin_boundaries.admin_level in" in sql
        assert "row_number() over (partition by anchors.anchor_idx" in sql

    def test_stop_statement_uses_geography_distance(self, gateway):
        sql = compile_sql(gateway.compiler.statement(gateway.stop_plan(1500, limit=5), POINTS))

        assert "st_dwithin(" in sql
        assert "geography" in sql
        assert "st_distance(" in sql
        assert "transit_stops.name is not null" in sql
        assert "ranked.rank <=" in sql

    def test_line_statement_measures_meters_on_geography(self, gateway):
        stmt = gateway.compiler.statement(gateway.line_plan(100, LINE_MODES), POINTS)
        sql = compile_sql(stmt)

        assert "st_dwithin(" in sql
        assert "geography" in sql
        assert "st_transform" not in sql
        assert 100 in stmt.compile(dialect=postgresql.dialect()).params.values()
        assert "transit_lines.mode in" in sql
        # No limit on lines
        assert "ranked.rank <=" not in sql

    def test_no_sql_text_from_plan_values(self, gateway):
        stmt = gateway.compiler.statement(gateway.stop_plan(1500, limit=5), POINTS)
        params = stmt.compile(dialect=postgresql.dialect()).params

        assert 1500 in params.values()
        assert 5 in params.values()

    def test_unsupported_predicate(self):
        from src.geoenrich.db.models import TransitStopRecord

        with pytest.raises(GatewayQueryError):
            PlanCompiler().predicate(object(), TransitStopRecord, MagicMock())


class TestFetch:
    """Tests for row grouping and error mapping"""

    def test_rows_are_grouped_per_anchor(self, gateway):
        catalunya = TransitStop(id=201, name="Catalunya", mode=TransitMode.METRO, lat=41.387, lon=2.17)
        sol = TransitStop(id=20, name="Sol", mode=TransitMode.METRO, lat=40.4169, lon=-3.7035)

        with patch.object(PostGISSpatialGateway, "_execute", return_value=[
            (0, 125.3, catalunya),
            (1, 27.0, sol),
        ]):
            results = gateway.nearest_stops_batch(POINTS, 1500)

        assert [[c.stop.id for c in r] for r in results] == [[201], [20]]
        assert results[0][0].distance_m == 125.3

    def test_anchor_without_rows_gets_empty_list(self, gateway):
        spain = AdminBoundary(id=1311341, name="España", admin_level=2)

        with patch.object(PostGISSpatialGateway, "_execute", return_value=[(1, 0.0, spain)]):
            results = gateway.containing_boundaries_batch(POINTS)

        assert results == [[], [spain]]

    def test_connection_failure_is_unavailable(self, gateway):
        error = exc.OperationalError("SELECT", {}, Exception("connection refused"))
        with patch.object(PostGISSpatialGateway, "_execute", side_effect=error):
            with pytest.raises(GatewayUnavailableError) as exc_info:
                gateway.containing_boundaries(POINTS[0])
        assert exc_info.value.operation == "containing_boundaries"

    def test_statement_failure_is_query_error(self, gateway):
        error = exc.ProgrammingError("SELECT", {}, Exception("invalid geometry"))
        with patch.object(PostGISSpatialGateway, "_execute", side_effect=error):
            with pytest.raises(GatewayQueryError):
                gateway.lines_near(POINTS[0], 100, LINE_MODES)

    def test_execute_converts_records_inside_session(self):
        record = MagicMock()
        record.to_domain.return_value = "domain"
        session = MagicMock()
        session.execute.return_value.all.return_value = [(0, 1.5, record)]

        gateway = PostGISSpatialGateway(MagicMock(return_value=session))
        rows = gateway._execute(MagicMock())

        assert rows == [(0, 1.5, "domain")]
        session.rollback.assert_called_once()
        session.close.assert_called_once()


class TestLifecycle:
    """Tests for health checks and shutdown"""

    def test_health_check_runs_select(self):
        session = MagicMock()
        gateway = PostGISSpatialGateway(MagicMock(return_value=session))

        assert gateway.health_check() is True
        session.execute.assert_called_once()

    def test_health_check_failure(self):
        session = MagicMock()
        session.execute.side_effect = exc.OperationalError("SELECT 1", {}, Exception("down"))
        gateway = PostGISSpatialGateway(MagicMock(return_value=session))

        assert gateway.health_check() is False

    def test_close_disposes_owned_engine(self):
        engine = MagicMock()
        PostGISSpatialGateway(MagicMock(), engine=engine).close()
        engine.dispose.assert_called_once()
