import logging

from backend.app.core.logging import LedgerContextFormatter, setup_logging


def _record(**extra):
    record = logging.makeLogRecord(
        {"name": "nacledger.ledger", "levelno": logging.WARNING, "levelname": "WARNING", "msg": "short", "args": ()}
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_ledger_context():
    formatter = LedgerContextFormatter("%(levelname)s %(name)s %(message)s")

    line = formatter.format(_record(nac_code="GT 10001", issue_id=7, shortfall=3.0))

    assert line == "WARNING nacledger.ledger short [nac_code=GT 10001 issue_id=7 shortfall=3.0]"


def test_formatter_without_context_is_plain():
    formatter = LedgerContextFormatter("%(levelname)s %(message)s")

    assert formatter.format(_record()) == "WARNING short"
    # skip : seul nac_code est posé
    assert formatter.format(_record(nac_code="NOPE")) == "WARNING short [nac_code=NOPE]"


def test_setup_logging_does_not_stack_handlers():
    root = logging.getLogger()
    previous_level = root.level
    try:
        first = setup_logging("debug")
        second = setup_logging("info")

        ours = [h for h in root.handlers if h.get_name() == "nacledger.stdout"]
        assert ours == [second]
        assert first not in root.handlers
        assert logging.getLogger("nacledger").level == logging.INFO
    finally:
        for h in [h for h in root.handlers if h.get_name() == "nacledger.stdout"]:
            root.removeHandler(h)
        root.setLevel(previous_level)
        logging.getLogger("nacledger").setLevel(logging.NOTSET)
