import asyncio

import pytest

from closet.core.errors import AIConfigError, AICreditsExhausted, AIRateLimited, AIUpstreamError
from closet.services.llm.client import AIGateway
from tests.fixtures import FakeOpenAI, image_reply, status_error


@pytest.mark.asyncio
async def test_chat_returns_content_and_uses_text_model():
    fake = FakeOpenAI(lambda kwargs: '{"ok": true}')
    ai = AIGateway(client=fake, model_text="text-model")
    res = await ai.chat([{"role": "user", "content": "hi"}])
    assert res.content == '{"ok": true}'
    assert res.images == []
    assert res.usage.model == "text-model"
    assert fake.calls[0]["model"] == "text-model"
    assert "extra_body" not in fake.calls[0]


@pytest.mark.asyncio
async def test_image_modalities_and_images_extracted():
    fake = FakeOpenAI(lambda kwargs: image_reply("data:image/png;base64,AAAA"))
    ai = AIGateway(client=fake, model_image="image-model")
    res = await ai.chat([], model=ai.model_image, modalities=["image", "text"])
    assert res.images == ["data:image/png;base64,AAAA"]
    assert fake.calls[0]["extra_body"] == {"modalities": ["image", "text"]}
    assert fake.calls[0]["model"] == "image-model"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "code,exc",
    [(429, AIRateLimited), (402, AICreditsExhausted), (500, AIUpstreamError), (503, AIUpstreamError)],
)
async def test_status_mapping(code, exc):
    ai = AIGateway(client=FakeOpenAI(lambda kwargs: status_error(code)))
    with pytest.raises(exc) as ei:
        await ai.chat([])
    assert ei.value.status_code == (code if code in (429, 402) else 500)


@pytest.mark.asyncio
async def test_upstream_status_is_kept():
    ai = AIGateway(client=FakeOpenAI(lambda kwargs: status_error(503)))
    with pytest.raises(AIUpstreamError) as ei:
        await ai.chat([])
    assert ei.value.upstream_status == 503


@pytest.mark.asyncio
async def test_timeout_becomes_upstream_error():
    class SlowCompletions:
        async def create(self, **kwargs):
            await asyncio.sleep(2)

    class SlowClient:
        chat = type("Chat", (), {"completions": SlowCompletions()})()

    ai = AIGateway(client=SlowClient(), timeout_ms=20)
    with pytest.raises(AIUpstreamError, match="timed out"):
        await ai.chat([])


@pytest.mark.asyncio
async def test_missing_api_key_is_config_error():
    ai = AIGateway(api_key="")
    with pytest.raises(AIConfigError) as ei:
        await ai.chat([])
    assert ei.value.status_code == 500
    assert ei.value.message == "AI service not configured"
