"""
Testes da análise por código de barras (cache compartilhado, fardos)
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.models.barcode_cache import BarcodeCache
from app.services.analysis_errors import BarcodeNotFoundError
from app.services.barcode_service import (
    DEFAULT_CONTAINER_OZ,
    analyze_barcode,
    parse_barcode_response,
    store_barcode,
)

BARCODE = "012000001291"
IMAGE_URL = "https://storage.example.com/water-images/barcode.jpg"


@pytest.fixture
def mock_upload():
    with patch("app.services.barcode_service.storage_service.upload_image", new=AsyncMock(return_value=IMAGE_URL)):
        yield


@pytest.fixture
def mock_detect():
    with patch("app.services.barcode_service.detect_barcode", new=AsyncMock(return_value=BARCODE)) as detect:
        yield detect


class TestParseBarcodeResponse:

    def test_multipack_total_uses_unit_size(self):
        content = "OUNCES: 405.6\nPRODUCT: Aquafina 24 pack 16.9 fl oz\nLIQUID: water"
        ounces, product, liquid = parse_barcode_response(content)
        assert ounces == 16.9
        assert product == "Aquafina 24 pack 16.9 fl oz"
        assert liquid == "water"

    def test_unit_size_kept(self):
        ounces, _, liquid = parse_barcode_response("OUNCES: 16.9\nPRODUCT: Aquafina 24 pack 16.9 fl oz\nLIQUID: Water")
        assert ounces == 16.9
        assert liquid == "water"

    def test_size_from_text_when_ounces_missing(self):
        ounces, product, _ = parse_barcode_response("PRODUCT: Fiji Water 33.8 fl oz")
        assert ounces == 33.8
        assert product == "Fiji Water 33.8 fl oz"

    def test_defaults(self):
        assert parse_barcode_response("no idea") == (DEFAULT_CONTAINER_OZ, "Unknown Product", "water")


@pytest.mark.asyncio
async def test_cache_miss_calls_llm_once_then_reuses(db_session, mock_upload, mock_detect, image_b64):
    llm = MagicMock()
    llm.complete = AsyncMock(return_value="OUNCES: 20\nPRODUCT: Coca-Cola 20 fl oz\nLIQUID: soda")

    first = await analyze_barcode(db_session, image_b64, "image/jpeg", llm=llm)
    second = await analyze_barcode(db_session, image_b64, "image/jpeg", percentage=50, llm=llm)

    assert llm.complete.await_count == 1
    assert first["cached"] is False
    assert second["cached"] is True
    # 20 x 0.75
    assert first["ounces"] == 15
    # 10 x 0.75 = 7.5
    assert second["ounces"] == 7.5
    assert second["productName"] == "Coca-Cola 20 fl oz"
    assert second["barcode"] == BARCODE
    assert second["imageUrl"] == IMAGE_URL
    assert db_session.query(BarcodeCache).count() == 1


@pytest.mark.asyncio
async def test_cached_value_is_never_overwritten(db_session, mock_upload, mock_detect, image_b64):
    store_barcode(db_session, BARCODE, "Poland Spring", 16.9, "water")
    store_barcode(db_session, BARCODE, "Something else", 99, "soda")

    cached = db_session.query(BarcodeCache).filter(BarcodeCache.barcode == BARCODE).one()
    assert float(cached.ounces) == 16.9
    assert cached.product_name == "Poland Spring"

    llm = MagicMock()
    llm.complete = AsyncMock()
    result = await analyze_barcode(db_session, image_b64, "image/jpeg", llm=llm)

    llm.complete.assert_not_awaited()
    assert result["containerCapacity"] == 16.9
    assert result["classification"] == "disposable-bottle"


@pytest.mark.asyncio
async def test_no_barcode_in_image(db_session, mock_upload, image_b64):
    with patch(
        "app.services.barcode_service.detect_barcode",
        new=AsyncMock(side_effect=BarcodeNotFoundError("No barcode found in image")),
    ):
        with pytest.raises(BarcodeNotFoundError):
            await analyze_barcode(db_session, image_b64, "image/jpeg", llm=MagicMock())
