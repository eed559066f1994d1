# Optimization_Deps.py
# Description: FastAPI dependencies for the optimization job endpoints.
#
# Imports
from fastapi import Depends

# Local Imports
from promptopt_Server_API.app.core.Optimization.job_registry import OptimizationJobRegistry, get_job_registry
from promptopt_Server_API.app.core.Optimization.optimizer_client import OptimizerClient
from promptopt_Server_API.app.core.Optimization.paths import OptimizationPaths
from promptopt_Server_API.app.core.Optimization.status_store import StatusStore

#######################################################################################################################

# Note: paths are resolved per request so tests can repoint OPTIMIZATION_DATA_DIR
# and call clear_config_cache() after the app has been imported.


def get_optimization_paths() -> OptimizationPaths:
    return OptimizationPaths.from_settings()


def get_status_store(paths: OptimizationPaths = Depends(get_optimization_paths)) -> StatusStore:
    return StatusStore(paths)


def get_optimizer_client() -> OptimizerClient:
    return OptimizerClient.from_settings()


def get_optimization_job_registry() -> OptimizationJobRegistry:
    return get_job_registry()

#
# End of Optimization_Deps.py
#######################################################################################################################
