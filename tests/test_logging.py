import logging

from sealcodes.utils.logging import get_logger


def test_module_loggers_share_one_handler():
    for _ in range(3):
        child = get_logger("sealcodes.signing.auth")
    root = get_logger()
    assert child.name == "sealcodes.signing.auth"
    assert not child.handlers
    assert child.propagate
    assert root.name == "sealcodes"
    assert len(root.handlers) == 1
    assert get_logger("sealcodes") is root


def test_foreign_names_nest_under_root():
    assert get_logger("tools.rotate").name == "sealcodes.tools.rotate"


def test_child_records_reach_root_handler():
    seen = []

    class Capture(logging.Handler):
        def emit(self, record):
            seen.append(record.name)

    root = get_logger()
    h = Capture()
    root.addHandler(h)
    try:
        get_logger("sealcodes.verification.service").warning("key not found")
    finally:
        root.removeHandler(h)
    assert seen == ["sealcodes.verification.service"]
