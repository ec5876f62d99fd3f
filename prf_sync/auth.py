"""Token provider for Microsoft Graph.

Two ways to get a bearer token:

* application-only - client-credentials grant with the app's secret.  No
  user involved; used first whenever a secret is configured.
* delegated - device-code sign-in by a person.  Tokens and refresh material
  live in a JSON cache file, so after the first sign-in tokens are refreshed
  silently.

Application permissions are often mis-provisioned on a tenant while the
person's own rights are fine.  ``TokenProvider.run`` therefore tries the
strategies in order and re-runs the whole operation once with the delegated
token when the application-only attempt is refused.
"""

import logging
import os
from typing import Callable, List, Optional, Tuple, TypeVar

import msal

from .config import GraphConfig
from .errors import AuthorizationError, ConfigurationError

logger = logging.getLogger("prf_sync.auth")

READ = "read"
WRITE = "write"

APP_SCOPES = ["https://graph.microsoft.com/.default"]
# msal adds offline_access/openid/profile itself and rejects them if passed.
DELEGATED_SCOPES = {
    READ: ["Files.Read.All"],
    WRITE: ["Files.ReadWrite.All"],
}

T = TypeVar("T")


def _check_purpose(purpose: str):
    if purpose not in DELEGATED_SCOPES:
        raise ValueError(f"Unknown token purpose: '{purpose}' (expected 'read' or 'write')")


def _token_or_raise(result: Optional[dict], strategy: str) -> str:
    if result and result.get("access_token"):
        return result["access_token"]
    if not result:
        raise AuthorizationError(f"{strategy}: no token returned", operation="acquire token")
    error = result.get("error", "unknown_error")
    description = (result.get("error_description") or "").splitlines()
    detail = description[0] if description else ""
    raise AuthorizationError(f"{strategy}: {error} {detail}".rstrip(), operation="acquire token")


class ApplicationTokenStrategy:
    """Client-credentials grant (app identity, needs the client secret)."""

    name = "application"

    def __init__(self, graph: GraphConfig, app_factory=msal.ConfidentialClientApplication):
        self.graph = graph
        self._app_factory = app_factory
        self._app = None

    def _application(self):
        if self._app is None:
            self._app = self._app_factory(
                self.graph.client_id,
                authority=self.graph.authority,
                client_credential=self.graph.client_secret,
            )
        return self._app

    def get_token(self, purpose: str) -> str:
        # Application permissions are granted per app, not per scope request.
        result = self._application().acquire_token_for_client(scopes=APP_SCOPES)
        return _token_or_raise(result, self.name)


class DelegatedTokenStrategy:
    """Device-code sign-in with a persisted msal token cache."""

    name = "delegated"

    def __init__(self, graph: GraphConfig, app_factory=msal.PublicClientApplication,
                 cache_factory=msal.SerializableTokenCache,
                 prompt: Optional[Callable[[dict], None]] = None):
        self.graph = graph
        self._app_factory = app_factory
        self._cache_factory = cache_factory
        self._prompt = prompt

    # ── Token cache ──

    def _load_cache(self):
        cache = self._cache_factory()
        path = self.graph.token_cache_path
        if path and os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                data = f.read()
            if data.strip():
                cache.deserialize(data)
        return cache

    def _save_cache(self, cache):
        path = self.graph.token_cache_path
        if not path:
            return
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(cache.serialize())
        logger.debug("Token cache written to %s", path)

    # ── Acquisition ──

    def get_token(self, purpose: str) -> str:
        _check_purpose(purpose)
        scopes = DELEGATED_SCOPES[purpose]
        cache = self._load_cache()
        app = self._app_factory(self.graph.client_id, authority=self.graph.authority,
                                token_cache=cache)

        result = None
        accounts = app.get_accounts()
        if accounts:
            result = app.acquire_token_silent(scopes, account=accounts[0])
            if result and result.get("access_token"):
                logger.debug("Delegated token refreshed silently for %s",
                             accounts[0].get("username", "cached account"))
            else:
                logger.info("Silent token refresh failed; starting device-code sign-in.")
                result = None

        if result is None:
            result = self._device_code_flow(app, scopes)

        token = _token_or_raise(result, self.name)
        self._save_cache(cache)
        return token

    def _device_code_flow(self, app, scopes: List[str]) -> dict:
        flow = app.initiate_device_flow(scopes=scopes)
        if "user_code" not in flow:
            raise AuthorizationError(
                f"{self.name}: could not start device-code flow: "
                f"{flow.get('error_description') or flow.get('error') or flow}",
                operation="acquire token",
            )
        logger.warning(
            "Complete device code login: open %s and enter code %s",
            flow.get("verification_uri"), flow.get("user_code"),
        )
        if self._prompt:
            self._prompt(flow)
        return app.acquire_token_by_device_flow(flow)


class TokenProvider:
    """Picks and orders token strategies; runs operations with fallback."""

    def __init__(self, graph: GraphConfig,
                 application: Optional[ApplicationTokenStrategy] = None,
                 delegated: Optional[DelegatedTokenStrategy] = None):
        if not graph.tenant_id or not graph.client_id:
            raise ConfigurationError("Azure credentials not configured (tenant id / client id).")
        self.graph = graph
        self.application = application or (
            ApplicationTokenStrategy(graph) if graph.app_only_configured else None
        )
        self.delegated = delegated or DelegatedTokenStrategy(graph)

    def strategies(self, purpose: str) -> list:
        """Ordered strategies: application first when a secret is configured."""
        _check_purpose(purpose)
        chain = []
        if self.graph.app_only_configured and self.application is not None:
            chain.append(self.application)
        chain.append(self.delegated)
        return chain

    def get_token(self, purpose: str) -> str:
        """Token from the preferred strategy, no fallback."""
        return self.strategies(purpose)[0].get_token(purpose)

    def run(self, purpose: str, operation: Callable[[str], T]) -> T:
        """Run ``operation(token)``, moving to the next strategy on AuthorizationError.

        Only authorization failures (token acquisition or any remote call inside
        ``operation``) trigger the next strategy; each strategy runs at most once.
        Every failure is kept on the final error's ``attempts``.
        """
        attempts: List[Tuple[str, Exception]] = []
        chain = self.strategies(purpose)
        for idx, strategy in enumerate(chain):
            try:
                token = strategy.get_token(purpose)
                return operation(token)
            except AuthorizationError as e:
                attempts.append((strategy.name, e))
                if idx + 1 < len(chain):
                    logger.warning(
                        "%s auth refused (%s); retrying with %s auth.",
                        strategy.name, e, chain[idx + 1].name,
                    )
        last = attempts[-1][1]
        summary = "; ".join(f"{name}: {err}" for name, err in attempts)
        raise AuthorizationError(
            f"All auth strategies failed ({summary})",
            operation=getattr(last, "operation", None),
            sheet=getattr(last, "sheet", None),
            status=getattr(last, "status", None),
            attempts=attempts,
        )
