from releasegate.env.env import (
    STAGE_FLAG_VARS,
    Environment,
    LoggingEnvironment,
    get_env,
    get_logging_env,
    reset_env_caches,
)
from releasegate.env.paths import (
    command_logs_dir,
    logs_dir,
    out_dir,
    out_file,
    workspace_root,
)

__all__ = [
    "STAGE_FLAG_VARS",
    "Environment",
    "LoggingEnvironment",
    "get_env",
    "get_logging_env",
    "reset_env_caches",
    "command_logs_dir",
    "logs_dir",
    "out_dir",
    "out_file",
    "workspace_root",
]
