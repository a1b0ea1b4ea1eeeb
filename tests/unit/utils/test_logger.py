from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from alert_engine.utils.logger import (
    ContextFilter,
    JsonFormatter,
    _debug_module_matches,
    get_logger,
    init_logging,
    log_connection,
    safe_jsonable,
)


class Side(Enum):
    BUY = "buy"


@dataclass
class Sample:
    path: Path
    created: datetime
    side: Side


def test_safe_jsonable_handles_common_types() -> None:
    payload = {
        "path": Path("foo/bar"),
        "created": datetime(2020, 1, 1, 0, 0, 0),
        "enum": Side.BUY,
        "sample": Sample(Path("x/y"), datetime(2021, 1, 2, 3, 4, 5), Side.BUY),
        "exc": ValueError("boom"),
        "tuple": (1, 2),
        "set": {3, 4},
    }

    out = safe_jsonable(payload)
    json.dumps(out)
    assert out["path"] == "foo/bar"
    assert "2020" in out["created"]
    assert out["enum"] == "buy"
    assert out["exc"] == "ValueError: boom"


def test_debug_module_matching() -> None:
    assert _debug_module_matches("alert_engine.runtime.worker", "runtime")
    assert _debug_module_matches("alert_engine.runtime.worker", "alert_engine.runtime")
    assert _debug_module_matches("ingestion.polygon", "ingestion")
    assert not _debug_module_matches("alert_engine.sinks", "runtime")


def test_json_formatter_lifts_category() -> None:
    record = logging.LogRecord("ingestion.polygon", logging.INFO, __file__, 1, "stream.state", None, None)
    record.context = {"category": "connection_lifecycle", "state": "subscribed"}
    out = json.loads(JsonFormatter().format(record))
    assert out["event"] == "stream.state"
    assert out["category"] == "connection_lifecycle"
    assert out["context"] == {"state": "subscribed"}
    assert out["level"] == "INFO"


def test_log_connection_respects_level(caplog) -> None:
    logger = logging.getLogger("test.connection")
    with caplog.at_level(logging.DEBUG, logger="test.connection"):
        log_connection(logger, "stream.state", level=logging.WARNING, state="error")
    rec = caplog.records[-1]
    assert rec.levelno == logging.WARNING
    assert rec.context["state"] == "error"
    assert rec.context["category"] == "connection_lifecycle"


def test_init_logging_dictconfig_applied(tmp_path: Path) -> None:
    config = {
        "active_profile": "default",
        "profiles": {
            "default": {
                "level": "INFO",
                "handlers": {"console": {"enabled": True}},
                "format": {"json": True},
            },
            "debug": {
                "level": "DEBUG",
                "debug": {"enabled": True, "modules": ["runtime"]},
            },
        },
    }
    config_path = tmp_path / "logging.json"
    config_path.write_text(json.dumps(config), encoding="utf-8")

    init_logging(config_path=str(config_path), run_id="r1", mode="debug")
    logger = get_logger("alert_engine.test")

    assert logging.getLogger().level == logging.DEBUG
    assert logger.getEffectiveLevel() == logging.DEBUG

    root = logging.getLogger()
    root_handlers = list(root.handlers)
    try:
        assert root_handlers
        assert any(isinstance(h.formatter, JsonFormatter) for h in root_handlers)
        assert any(any(isinstance(f, ContextFilter) for f in h.filters) for h in root_handlers)
    finally:
        # the console handler is bound to pytest's captured stdout
        for h in root_handlers:
            root.removeHandler(h)
        root.setLevel(logging.WARNING)


def test_repo_logging_config_profiles_load() -> None:
    path = Path(__file__).resolve().parents[3] / "configs" / "logging.json"
    cfg = json.loads(path.read_text(encoding="utf-8"))
    assert cfg["active_profile"] in cfg["profiles"]
    assert {"default", "realtime", "debug", "test"} <= set(cfg["profiles"])
