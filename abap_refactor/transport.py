"""Transport — one request/response exchange with the chat-completions endpoint.

Every outcome is returned as a value: a TransportReply on HTTP 200 with a
well-formed first choice, otherwise a PhaseFailure classified as ``http``,
``malformed`` or ``network``. Nothing is retried here.
"""

import base64
import logging

import httpx

from abap_refactor.config import get_config, get_llm_settings
from abap_refactor.history import DEFAULT_MAX_MESSAGES, History, Message
from abap_refactor.results import PhaseFailure, TransportReply

logger = logging.getLogger(__name__)

MALFORMED_RESPONSE = "Empty or malformed response from the model endpoint."


def _build_proxy(url: str, user: str = "", password: str = "") -> httpx.Proxy | None:
    """Build an outbound proxy, sending Basic credentials when a user is given."""
    if not url:
        return None
    headers = {}
    if user:
        token = base64.b64encode(f"{user}:{password}".encode()).decode()
        headers["Proxy-Authorization"] = f"Basic {token}"
    return httpx.Proxy(url=url, headers=headers)


class LLMTransport:
    """Posts ``{model, messages}`` to a configured endpoint using a pooled async client."""

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: str = "",
        *,
        api_key_header: str = "api-key",
        timeout: float = 120.0,
        history_max_messages: int = DEFAULT_MAX_MESSAGES,
        proxy: httpx.Proxy | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        if not endpoint:
            raise ValueError("LLM endpoint URL is not configured (set LLM_ENDPOINT).")
        if not model:
            raise ValueError("Model identifier is not configured (set MODEL).")
        self.endpoint = endpoint
        self.model = model
        self.api_key = api_key
        self.api_key_header = api_key_header
        self.timeout = timeout
        self.history_max_messages = history_max_messages
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, proxy=proxy)

    @classmethod
    def from_config(cls, client: httpx.AsyncClient | None = None) -> "LLMTransport":
        """Build a transport from config.yaml and the environment."""
        settings = get_llm_settings()
        proxy = None
        if client is None:
            proxy = _build_proxy(
                settings["proxy_url"], settings["proxy_user"], settings["proxy_password"]
            )
        return cls(
            settings["endpoint"],
            settings["model"],
            settings["api_key"],
            api_key_header=settings["api_key_header"],
            timeout=settings["timeout"],
            history_max_messages=get_config().get("history_max_messages", DEFAULT_MAX_MESSAGES),
            proxy=proxy,
            client=client,
        )

    def new_history(self) -> History:
        return History(max_length=self.history_max_messages)

    def build_outbound(self, system_message: str, user_message: str, history: History) -> History:
        """Return the history to send: system message ensured, user message appended, cap enforced."""
        outbound = history
        if not outbound.has_system_message():
            outbound = outbound.with_system(system_message)
        return outbound.append(Message("user", user_message))

    async def call(
        self, system_message: str, user_message: str, history: History
    ) -> TransportReply | PhaseFailure:
        outbound = self.build_outbound(system_message, user_message, history)
        headers = {
            self.api_key_header: self.api_key,
            "Content-Type": "application/json",
        }
        body = {"model": self.model, "messages": outbound.to_payload()}

        try:
            response = await self._client.post(
                self.endpoint, headers=headers, json=body, timeout=self.timeout
            )
            if response.status_code != 200:
                logger.error(
                    "Model endpoint returned %s: %s", response.status_code, response.text
                )
                return PhaseFailure(
                    reason=response.reason_phrase or f"HTTP {response.status_code}",
                    kind="http",
                    status_code=response.status_code,
                    body=response.text,
                )
            data = response.json()
        except httpx.TimeoutException as exc:
            logger.error("Model request timed out after %ss: %r", self.timeout, exc)
            return PhaseFailure(
                reason=f"Network or parsing error: request timed out after {self.timeout}s",
                kind="network",
            )
        except (httpx.HTTPError, ValueError) as exc:
            # ValueError covers JSONDecodeError and undecodable bodies.
            logger.error("Model request failed: %r", exc)
            return PhaseFailure(reason=f"Network or parsing error: {exc}", kind="network")

        message = _first_choice_message(data)
        if message is None:
            logger.error("Malformed model response: %.500s", response.text)
            return PhaseFailure(reason=MALFORMED_RESPONSE, kind="malformed", body=response.text)

        return TransportReply(message=message, history=outbound.append(message))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "LLMTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _first_choice_message(data) -> Message | None:
    """Extract ``choices[0].message`` as an assistant Message, or None if malformed.

    The reply is always stored with the assistant role, whatever role the
    endpoint reports.
    """
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    raw = choices[0].get("message")
    if not isinstance(raw, dict) or not isinstance(raw.get("content"), str):
        return None
    if not raw["content"].strip():
        return None
    return Message("assistant", raw["content"])
