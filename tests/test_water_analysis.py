"""
Testes da análise por imagem (dois passes) e por descrição
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.middleware import llm_guard
from app.services.analysis_errors import (
    AlcoholNotCountedError,
    AnalysisParseError,
    AnalysisRateLimitError,
    NoLiquidDetectedError,
)
from app.services.water_analysis import (
    analyze_image,
    analyze_text,
    parse_decision,
    parse_text_answer,
)

IMAGE_URL = "https://storage.example.com/water-images/2026/03/10/abc.jpg"


def _llm(*responses):
    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=list(responses))
    return llm


@pytest.fixture
def mock_upload():
    with patch("app.services.water_analysis.storage_service.upload_image", new=AsyncMock(return_value=IMAGE_URL)) as upload:
        yield upload


class TestParseDecision:

    def test_estimate(self):
        assert parse_decision("ESTIMATE:16.9:disposable-bottle:water") == (17.0, "disposable-bottle", "water")

    def test_estimate_with_unit_suffix(self):
        assert parse_decision("ESTIMATE:16.9 oz:disposable-bottle:water") == (17.0, "disposable-bottle", "water")
        assert parse_decision("ESTIMATE:~20oz:reusable-bottle") == (20.0, "reusable-bottle", None)

    def test_estimate_without_liquid(self):
        ounces, classification, liquid = parse_decision("ESTIMATE: 24 : reusable-bottle")
        assert ounces == 24
        assert classification == "reusable-bottle"
        assert liquid is None

    def test_no_water(self):
        with pytest.raises(NoLiquidDetectedError, match="empty table"):
            parse_decision("NO_WATER: empty table, no container")

    def test_unrecognized_format_uses_first_number(self):
        assert parse_decision("I think it is about 12 oz") == (12.0, "reusable-bottle", "water")

    def test_out_of_range(self):
        with pytest.raises(AnalysisParseError):
            parse_decision("ESTIMATE:500:jug:water")
        with pytest.raises(AnalysisParseError):
            parse_decision("Sorry, I can't help with that.")


class TestParseTextAnswer:

    def test_final_answer_with_liquid(self):
        content = "A venti is 24 oz of iced coffee.\nFINAL ANSWER: 24 oz | LIQUID: Iced Coffee"
        assert parse_text_answer(content) == (24.0, "iced coffee")

    def test_missing_final_answer_asks_for_new_description(self):
        with pytest.raises(AnalysisParseError, match="describe"):
            parse_text_answer("That sounds refreshing!")


class TestAnalyzeImage:

    @pytest.mark.asyncio
    async def test_two_pass_with_percentage(self, mock_upload, image_b64):
        llm = _llm(
            "Estimates: 20, 24, 22 oz. Size: large. Reasoning: tall bottle.",
            "ESTIMATE:20:reusable-bottle:water",
        )

        result = await analyze_image(image_b64, "image/jpeg", hand_size="large", percentage=50, llm=llm)

        assert result == {
            "ounces": 10,
            "classification": "reusable-bottle",
            "liquidType": "water",
            "servings": 1,
            "imageUrl": IMAGE_URL,
            "containerCapacity": 20,
            "matchedBottleId": None,
        }
        assert llm.complete.await_count == 2
        mock_upload.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_upload_happens_before_classification(self, mock_upload, image_b64):
        order = []
        mock_upload.side_effect = lambda *a, **k: order.append("upload") or IMAGE_URL
        llm = MagicMock()

        async def complete(**kwargs):
            order.append(kwargs["operation"])
            return "ESTIMATE:16:disposable-bottle:water" if "decision" in kwargs["operation"] else "pass one"

        llm.complete = complete
        await analyze_image(image_b64, "image/jpeg", llm=llm)

        assert order[0] == "upload"

    @pytest.mark.asyncio
    async def test_duration_skips_geometric_pass(self, mock_upload, image_b64):
        llm = _llm("ESTIMATE:24:reusable-bottle:water")

        result = await analyze_image(image_b64, "image/jpeg", sip_size="medium", duration="10 seconds", llm=llm)

        # 10 s x 0.6 oz/s
        assert result["ounces"] == 6
        assert llm.complete.await_count == 1
        assert llm.complete.await_args.kwargs["operation"] == "analyze-water:decision"

    @pytest.mark.asyncio
    async def test_user_liquid_type_wins(self, mock_upload, image_b64):
        llm = _llm("pass one", "ESTIMATE:12:disposable-can:water")

        result = await analyze_image(image_b64, "image/jpeg", liquid_type="Diet Coke", llm=llm)

        # 12 x 0.9 = 10.8 -> 11
        assert result["ounces"] == 11
        assert result["liquidType"] == "Diet Coke"

    @pytest.mark.asyncio
    async def test_alcohol_is_rejected(self, mock_upload, image_b64):
        llm = _llm("pass one", "ESTIMATE:12:disposable-can:beer")

        with pytest.raises(AlcoholNotCountedError):
            await analyze_image(image_b64, "image/jpeg", llm=llm)

    @pytest.mark.asyncio
    async def test_guard_slot_released_after_failure(self, mock_upload, image_b64):
        llm = _llm("pass one", "NO_WATER: nothing here")

        with pytest.raises(NoLiquidDetectedError):
            await analyze_image(image_b64, "image/jpeg", guard_user="user-1", llm=llm)

        assert llm_guard._memory_state["total_in_flight"] == 0
        assert llm_guard._memory_state["user_in_flight"] == {}

    @pytest.mark.asyncio
    async def test_user_with_request_in_flight_is_rejected(self, mock_upload, image_b64):
        await llm_guard.acquire_slot("user-1")
        llm = _llm("pass one", "ESTIMATE:16:disposable-bottle:water")

        with pytest.raises(AnalysisRateLimitError):
            await analyze_image(image_b64, "image/jpeg", guard_user="user-1", llm=llm)

        llm.complete.assert_not_awaited()


class TestAnalyzeText:

    @pytest.mark.asyncio
    async def test_description(self):
        llm = _llm("FINAL ANSWER: 16 oz | LIQUID: gatorade")

        result = await analyze_text("a bottle of gatorade", llm=llm)

        # 16 x 0.7 = 11.2 -> 11
        assert result["ounces"] == 11
        assert result["classification"] == "description"
        assert result["liquidType"] == "gatorade"
        assert result["description"] == "a bottle of gatorade"

    @pytest.mark.asyncio
    async def test_beer_description_raises(self):
        llm = _llm("FINAL ANSWER: 12 oz | LIQUID: beer")

        with pytest.raises(AlcoholNotCountedError):
            await analyze_text("a can of beer", llm=llm)
