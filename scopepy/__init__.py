from .errors import (
    LifecycleError,
    AcquisitionError,
    MissingResourceError,
    CloseError,
)
from .outcome import Outcome, Acquired, EMPTY, outcome_of
from .protocol import (
    Resource,
    AsyncResource,
    Handle,
    NO_VALUE,
    acquire,
    acquire_async,
    from_resource,
)
from .core import Cause
from .duration import Duration
from .logger import ConsoleLogger
from .scope import Scope
from .runtime import (
    Runtime,
    Supervisor,
    CollectingSupervisor,
    default_runtime,
    set_default_runtime,
    run_scoped,
    run_scoped_async,
    using,
    async_using,
)
from .batch import Batch, BatchEntry, EntryState, run_batch
from .lock import LockProxy, AsyncLockProxy, with_timeout
