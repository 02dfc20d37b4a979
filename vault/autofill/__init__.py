"""
autofill
--------
Browser side of the vault: extension state, the background message broker
that talks to the API, and the Playwright-driven form filler.

    state = ExtensionState.load(JsonFileStateStorage("~/.vault/extension.json"))
    broker = CredentialBroker(state)

    async def request(origin):
        return await broker.handle({"type": "FETCH_CREDENTIALS", "payload": {"host": origin}})

    agent = AutofillAgent(page, request, state)
    agent.attach()
"""

from vault.autofill.agent import AutofillAgent, AutofillState, FillResult, NavigationEpoch
from vault.autofill.broker import CredentialBroker
from vault.autofill.fields import SiteConfig
from vault.autofill.state import ExtensionState, JsonFileStateStorage

__all__ = [
    "AutofillAgent",
    "AutofillState",
    "CredentialBroker",
    "ExtensionState",
    "FillResult",
    "JsonFileStateStorage",
    "NavigationEpoch",
    "SiteConfig",
]
