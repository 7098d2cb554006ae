# Account lifecycle services
from planora_api.services.account_context import AccountContext, account_context_scope
from planora_api.services.account_purge import (
    PURGE_STEPS,
    PurgeReport,
    PurgeStep,
    PurgeWorker,
    StepPolicy,
    UserPurgeResult,
)
from planora_api.services.scheduler import (
    get_scheduler,
    purge_due_accounts,
    start_scheduler,
    stop_scheduler,
)
from planora_api.services.signup import complete_signup, initiate_signup

__all__ = [
    "AccountContext",
    "PURGE_STEPS",
    "PurgeReport",
    "PurgeStep",
    "PurgeWorker",
    "StepPolicy",
    "UserPurgeResult",
    "account_context_scope",
    "complete_signup",
    "get_scheduler",
    "initiate_signup",
    "purge_due_accounts",
    "start_scheduler",
    "stop_scheduler",
]
