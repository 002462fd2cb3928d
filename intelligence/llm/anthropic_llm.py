"""
Anthropic LLM
Claude 系列模型
"""
from typing import List, Optional
import logging
import inspect

from .base import BaseLLM, Message, MessageRole, LLMResponse
from utils.exceptions import LLMError


logger = logging.getLogger(__name__)


class AnthropicLLM(BaseLLM):
    """
    Anthropic Claude LLM 实现

    支持模型:
    - claude-3-5-haiku-latest (默认，评分场景足够)
    - claude-3-5-sonnet-latest
    """

    def __init__(
        self,
        model: str = "claude-3-5-haiku-latest",
        api_key: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 2048,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key
        self._async_client = None

    @property
    def provider(self) -> str:
        return "anthropic"

    def _get_async_client(self):
        """获取异步客户端"""
        if self._async_client is None:
            from anthropic import AsyncAnthropic
            self._async_client = AsyncAnthropic(
                api_key=self.api_key,
                timeout=self.timeout,
            )
        return self._async_client

    def _convert_messages(self, messages: List[Message]) -> tuple:
        """
        转换消息格式 (Anthropic 的 system 单独传递)

        Returns:
            (system_prompt, messages_list)
        """
        system_parts = []
        converted = []

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                system_parts.append(msg.content)
            else:
                converted.append({
                    "role": msg.role.value,
                    "content": msg.content,
                })

        return "\n\n".join(system_parts) or None, converted

    def _build_request(self, messages: List[Message], **kwargs) -> dict:
        system_prompt, converted_messages = self._convert_messages(messages)
        if kwargs.get("json_mode"):
            hint = "Respond with a single JSON object and nothing else."
            system_prompt = f"{system_prompt}\n\n{hint}" if system_prompt else hint

        request_params = {
            "model": self.model,
            "messages": converted_messages,
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }
        if system_prompt:
            request_params["system"] = system_prompt
        return request_params

    async def acomplete(
        self,
        messages: List[Message],
        **kwargs,
    ) -> LLMResponse:
        """异步生成响应"""
        client = self._get_async_client()
        request_params = self._build_request(messages, **kwargs)

        try:
            response = await client.messages.create(**request_params)
        except Exception as e:
            raise LLMError(f"Anthropic request failed: {e}", provider=self.provider) from e

        content = "".join(
            block.text for block in response.content if block.type == "text"
        )

        return LLMResponse(
            content=content,
            model=response.model,
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
            finish_reason=response.stop_reason,
            raw_response=response,
        )

    async def aclose(self) -> None:
        client = self._async_client
        if client is None:
            return
        close_fn = getattr(client, "close", None)
        if callable(close_fn):
            try:
                maybe_awaitable = close_fn()
                if inspect.isawaitable(maybe_awaitable):
                    await maybe_awaitable
            except Exception:
                logger.debug("Failed to close Anthropic client", exc_info=True)
        self._async_client = None
