"""
Structured logging for Backend RiskCore.

JSON logs with timestamp, wallet, event_type and detector context.
Use get_logger() in every engine module.
"""

from backend_riskcore.riskcore_logging.logger import bind_wallet, get_logger, short_wallet

__all__ = ["bind_wallet", "get_logger", "short_wallet"]
