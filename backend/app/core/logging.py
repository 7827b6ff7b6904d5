import logging
import sys

# champs posés en `extra` par le rebuild (skip, allocation incomplète)
LEDGER_CONTEXT_FIELDS = ("nac_code", "issue_id", "shortfall")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class LedgerContextFormatter(logging.Formatter):
    """Recopie le contexte ledger en fin de ligne : `... [nac_code=GT 1 shortfall=3]`."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = [
            f"{name}={getattr(record, name)}"
            for name in LEDGER_CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if context:
            line = f"{line} [{' '.join(context)}]"
        return line


def setup_logging(level: str = "INFO") -> logging.Handler:
    """
    Branche la sortie stdout sur le root logger.

    Appelé au démarrage de l'app ; un second appel (reload) remplace le
    handler posé par le premier au lieu d'en empiler un autre.
    """
    level = level.upper()
    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        if getattr(h, "name", None) == "nacledger.stdout":
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name("nacledger.stdout")
    handler.setFormatter(LedgerContextFormatter(LOG_FORMAT))
    root.addHandler(handler)

    logging.getLogger("nacledger").setLevel(level)
    return handler
