"""
LLM Client Abstraction
Single entry point for all AI calls in the compliance viewer.
Primary: Google Gemini 2.5 Flash (multimodal, native JSON output)
Fallback: Groq LLaMA 3.2 90B Vision
"""
import logging
from typing import Optional

import litellm

from app.config import LLM_FALLBACK_MODEL, LLM_MAX_TOKENS, LLM_PRIMARY_MODEL, LLM_TEMPERATURE
from app.services.errors import ProviderError

logger = logging.getLogger("sbc-llm")

# Suppress litellm verbose logging
litellm.set_verbose = False


async def _acompletion(model: str, **kwargs) -> str:
    response = await litellm.acompletion(model=model, **kwargs)
    return response.choices[0].message.content or ""


async def complete(
    messages: list,
    temperature: float = LLM_TEMPERATURE,
    json_mode: bool = False,
    max_tokens: int = LLM_MAX_TOKENS,
) -> str:
    """
    Call the primary LLM. Falls back to the secondary model on rate limit or error.
    Returns the response content string.
    """
    kwargs = {
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    try:
        return await _acompletion(LLM_PRIMARY_MODEL, **kwargs)
    except litellm.RateLimitError:
        logger.warning(f"{LLM_PRIMARY_MODEL} rate limit hit — falling back to {LLM_FALLBACK_MODEL}")
    except litellm.AuthenticationError:
        logger.warning(f"{LLM_PRIMARY_MODEL} auth error — falling back to {LLM_FALLBACK_MODEL}")
    except Exception as e:
        logger.warning(f"{LLM_PRIMARY_MODEL} error ({type(e).__name__}: {e}) — falling back")

    try:
        fallback_kwargs = {k: v for k, v in kwargs.items() if k != "response_format"}
        if json_mode:
            fallback_kwargs["messages"] = _with_json_instruction(fallback_kwargs["messages"])
        return await _acompletion(LLM_FALLBACK_MODEL, **fallback_kwargs)
    except Exception as e:
        logger.error(f"Both LLMs failed. Fallback error: {e}")
        raise ProviderError(f"All LLM providers failed. Last error: {e}") from e


def _with_json_instruction(messages: list) -> list:
    """Prepend/extend the system message so a model without response_format returns JSON."""
    messages = [dict(m) for m in messages]
    if messages and messages[0]["role"] == "system":
        messages[0]["content"] += "\n\nIMPORTANT: Respond with valid JSON only."
    else:
        messages = [{"role": "system", "content": "You must respond with valid JSON only."}] + messages
    return messages


async def complete_with_vision(
    images_base64: list[str],
    prompt: str,
    system_prompt: Optional[str] = None,
    mime_type: str = "image/jpeg",
    temperature: float = LLM_TEMPERATURE,
    json_mode: bool = False,
) -> str:
    """
    Vision-capable LLM call for drawing images.
    images_base64: list of base64-encoded PNG/JPEG/WEBP strings (no data: prefix)
    """
    content = []
    for img_b64 in images_base64:
        content.append({
            "type": "image_url",
            "image_url": {"url": f"data:{mime_type};base64,{img_b64}"}
        })
    content.append({"type": "text", "text": prompt})

    messages = [{"role": "user", "content": content}]
    if system_prompt:
        messages.insert(0, {"role": "system", "content": system_prompt})

    return await complete(messages, temperature=temperature, json_mode=json_mode)


class LLMClient:
    """
    Class-based wrapper around the module-level complete() / complete_with_vision() functions.
    Used by the analysis and chat services so tests can swap in a fake client.
    """

    async def chat(
        self,
        messages: list,
        temperature: float = LLM_TEMPERATURE,
        json_mode: bool = False,
        max_tokens: int = LLM_MAX_TOKENS,
    ) -> str:
        return await complete(messages, temperature=temperature, json_mode=json_mode, max_tokens=max_tokens)

    async def vision(
        self,
        images_base64: list,
        prompt: str,
        system_prompt: Optional[str] = None,
        mime_type: str = "image/jpeg",
        json_mode: bool = False,
    ) -> str:
        return await complete_with_vision(
            images_base64, prompt, system_prompt=system_prompt, mime_type=mime_type, json_mode=json_mode
        )


def get_system_prompt(role: str) -> str:
    """Standard system prompts for different AI roles."""
    prompts = {
        "analyst": (
            "You are a Senior Engineering Compliance Specialist for the Kingdom of Saudi Arabia. "
            "Your role is to analyze architectural and engineering drawings (provided as images) "
            "against the Saudi Building Code (SBC).\n"
            "Focus areas:\n"
            "1. SBC 201 (General Building)\n"
            "2. SBC 801 (Fire Code)\n"
            "3. Accessibility Standards\n"
            "4. Structural Integrity (General checks)\n\n"
            "When analyzing an image:\n"
            "- Identify key elements: Exits, Corridors, Rooms, Parking, Ramps.\n"
            "- Flag non-compliance issues (e.g., dead-end corridors > 6m, door widths < 900mm, "
            "missing fire exits).\n"
            "- Be precise with SBC references.\n"
            "- CRITICAL: For every finding, provide a 2D bounding box [ymin, xmin, ymax, xmax] "
            "(normalized 0-1 coordinates) that strictly highlights the specific area of the issue "
            "on the drawing.\n"
            "- If the image is unclear or abstract, provide a best-effort analysis based on visible geometry."
        ),
        "consultant": (
            "You are an expert AI Consultant for Saudi Engineering Compliance. "
            "You help engineers understand and fix compliance issues in their AutoCAD/BIM designs. "
            "You have deep knowledge of:\n"
            "- Saudi Building Code (SBC) 201, 801, 501, 601.\n"
            "- MOMRAH (Ministry of Municipal and Rural Affairs and Housing) regulations.\n"
            "- Civil Defense requirements.\n\n"
            "Provide actionable, technical advice. Be professional, concise, and helpful."
        ),
    }
    return prompts.get(role, prompts["analyst"])
