import logging
from typing import Optional

from .config import settings


def setup_engine_logger(name: str = "command_line", level: Optional[str] = None) -> logging.Logger:
    """Setup standardized logger for the command line engine with UTF-8 support."""
    logger = logging.getLogger(name)

    if not logger.handlers:  # Avoid duplicate handlers
        handler = logging.StreamHandler()
        if hasattr(handler.stream, 'reconfigure'):
            handler.stream.reconfigure(encoding='utf-8')

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    level_name = (level or settings.log_level or "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    return logger


def log_submission(logger: logging.Logger,
                   command: str,
                   mode: str,
                   success: bool,
                   stage: str,
                   source_chain_id: Optional[int] = None,
                   target_chain_id: Optional[int] = None,
                   asset: Optional[str] = None,
                   error: Optional[str] = None) -> None:
    """Log one finish attempt in a structured format."""

    log_data = {
        "command": command,
        "mode": mode,
        "stage": stage,
        "success": success,
    }

    if source_chain_id is not None:
        log_data["source_chain_id"] = source_chain_id
    if target_chain_id is not None:
        log_data["target_chain_id"] = target_chain_id
    if asset:
        log_data["asset"] = asset if len(asset) <= 64 else asset[:61] + "..."
    if error:
        log_data["error"] = error

    status_icon = "✅" if success else "❌"
    stage_desc = stage.replace("_", " ").title()

    if error:
        logger.warning(f"{status_icon} {stage_desc}: {log_data}")
    else:
        logger.info(f"{status_icon} {stage_desc}: {log_data}")
