from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config import EngineConfig
from .data_source import FixturesDataSource
from .orchestrator import ComplianceOrchestrator
from .result_store import InMemoryResultStore, LocalResultStore, ResultStore


def build_orchestrator(
    config: EngineConfig,
    *,
    source: str = "sql",
    results: Optional[ResultStore] = None,
    results_dir: Optional[Path] = None,
) -> ComplianceOrchestrator:
    """Wire stores for a data source name (sql|fixtures) into an orchestrator."""
    name = (source or "").strip().lower()
    if name == "sql":
        from .sql_store import SqlDataSource, SqlResultStore, create_sql_engine, init_schema, make_session_factory

        engine = create_sql_engine(config.database_url)
        init_schema(engine)
        session_factory = make_session_factory(engine)
        data = SqlDataSource(session_factory)
        store: ResultStore = results or SqlResultStore(session_factory)
    elif name == "fixtures":
        if config.fixtures_dir is None:
            raise ValueError("Fixtures mode requires COMPLIANCE_FIXTURES_DIR or --fixtures-dir.")
        data = FixturesDataSource(config.fixtures_dir)
        if results is not None:
            store = results
        elif results_dir is not None:
            store = LocalResultStore(root_dir=results_dir)
        else:
            store = InMemoryResultStore()
    else:
        raise ValueError(f"Unknown data source '{source}' (expected 'sql' or 'fixtures').")

    return ComplianceOrchestrator(
        documents=data,
        rule_config=data,
        vendors=data,
        results=store,
        profile=config.profile,
        max_workers=config.max_workers,
    )
