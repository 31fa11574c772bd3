from neighbourhood_pulse.shared.config import Settings, get_config, reload_config
from neighbourhood_pulse.shared.errors import MissingInputError, PipelineError
from neighbourhood_pulse.shared.log_setup import configure_logging

__all__ = [
    "get_config",
    "reload_config",
    "Settings",
    "PipelineError",
    "MissingInputError",
    "configure_logging",
]
