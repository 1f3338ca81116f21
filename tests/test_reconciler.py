"""Tests for match reconciliation."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from voice_keyword_mcp.errors import MatchServiceFailure, TranslationFailure
from voice_keyword_mcp.models import Keyword, KeywordAnalysis, MatchServiceResult
from voice_keyword_mcp.reconciler import MATCH_SERVICE_ERROR, MatchReconciler, exact_pass
from voice_keyword_mcp.translation import TranslationBridge


@pytest.fixture
def reconciler(mock_provider):
    return MatchReconciler(mock_provider, TranslationBridge(mock_provider), timeout=5)


class TestExactPass:
    def test_case_insensitive_containment(self):
        found = exact_pass("The Quick Brown Fox", {"k": "quick brown"})
        assert found == {"k": True}

    def test_absent(self):
        assert exact_pass("The Quick Brown Fox", {"k": "lazy dog"}) == {"k": False}

    def test_cjk(self):
        assert exact_pass("我们需要数字化转型", {"k": "数字化转型"}) == {"k": True}


class TestReconcile:
    @pytest.mark.asyncio
    async def test_exact_match_counts_presence(self, reconciler, mock_provider):
        kw = Keyword(id="k1", text="quick brown")
        result = await reconciler.reconcile(
            "The Quick Brown Fox, quick brown", [kw], "en", "en"
        )
        update = result.updates["k1"]
        assert update.detected is True
        assert update.match_count == 1
        assert update.source_text == "quick brown"

    @pytest.mark.asyncio
    async def test_all_exact_skips_remote_call(self, reconciler, mock_provider):
        kw = Keyword(id="k1", text="fox")
        result = await reconciler.reconcile("The Quick Brown Fox", [kw], "en", "en")
        mock_provider.match_keywords.assert_not_awaited()
        assert result.marked_transcript is None
        assert result.error is None

    @pytest.mark.asyncio
    async def test_only_unmatched_keywords_are_sent(self, reconciler, mock_provider, sample_keywords):
        mock_provider.match_keywords.return_value = MatchServiceResult(
            analysis=[
                KeywordAnalysis(object="Urgent", absolute_pair=0, blur_pair=1, fuzzy_segments=["right now"]),
                KeywordAnalysis(object="Support", absolute_pair=0, blur_pair=0),
            ],
            marked_transcript="<exact>Hello</exact>, I need help <fuzzy>right now</fuzzy>",
        )
        transcript = "Hello, I need help right now"
        result = await reconciler.reconcile(transcript, sample_keywords, "en", "en")

        mock_provider.match_keywords.assert_awaited_once_with(transcript, ["Urgent", "Support"])
        assert result.updates["k1"].detected is True
        assert result.updates["k3"].detected is True
        urgent = result.updates["k2"]
        assert urgent.detected is False
        assert urgent.match_count == 0
        assert urgent.fuzzy_count == 1
        assert urgent.fuzzy_segments == ["right now"]
        assert result.marked_transcript.startswith("<exact>Hello</exact>")

    @pytest.mark.asyncio
    async def test_service_result_overrides_exact_pass(self, reconciler, mock_provider):
        mock_provider.match_keywords.return_value = MatchServiceResult(
            analysis=[KeywordAnalysis(object="colour", absolute_pair=2, blur_pair=0)],
        )
        kw = Keyword(id="k1", text="colour")
        result = await reconciler.reconcile("the color is red, color again", [kw], "en", "en")
        assert result.updates["k1"].detected is True
        assert result.updates["k1"].match_count == 2

    @pytest.mark.asyncio
    async def test_service_zero_count_stays_undetected(self, reconciler, mock_provider):
        mock_provider.match_keywords.return_value = MatchServiceResult(
            analysis=[KeywordAnalysis(object="lazy", absolute_pair=0, blur_pair=0)],
        )
        result = await reconciler.reconcile("quick fox", [Keyword(id="k1", text="lazy")], "en", "en")
        assert result.updates["k1"].detected is False
        assert result.updates["k1"].match_count == 0

    @pytest.mark.asyncio
    async def test_service_failure_keeps_exact_results(self, reconciler, mock_provider, sample_keywords):
        mock_provider.match_keywords.side_effect = MatchServiceFailure("unreachable")
        result = await reconciler.reconcile("Hello there", sample_keywords, "en", "en")
        assert result.error == MATCH_SERVICE_ERROR
        assert result.marked_transcript is None
        assert result.updates["k1"].detected is True
        assert result.updates["k2"].detected is False

    @pytest.mark.asyncio
    async def test_transport_error_keeps_exact_results(self, reconciler, mock_provider, sample_keywords):
        mock_provider.match_keywords.side_effect = httpx.ConnectError("Connection refused")
        result = await reconciler.reconcile("hello world", sample_keywords, None, "en")
        assert result.error == MATCH_SERVICE_ERROR
        assert result.updates["k1"].detected is True
        assert result.updates["k1"].match_count == 1
        assert result.updates["k2"].detected is False

    @pytest.mark.asyncio
    async def test_service_timeout_degrades(self, mock_provider):
        async def slow(*args):
            await asyncio.sleep(1)

        mock_provider.match_keywords.side_effect = slow
        reconciler = MatchReconciler(mock_provider, TranslationBridge(mock_provider), timeout=0.01)
        result = await reconciler.reconcile("nothing", [Keyword(id="k1", text="x")], "en", "en")
        assert result.error == MATCH_SERVICE_ERROR
        assert result.updates["k1"].detected is False

    @pytest.mark.asyncio
    async def test_unknown_service_objects_ignored(self, reconciler, mock_provider):
        mock_provider.match_keywords.return_value = MatchServiceResult(
            analysis=[KeywordAnalysis(object="something else", absolute_pair=5)],
        )
        result = await reconciler.reconcile("text", [Keyword(id="k1", text="x")], "en", "en")
        assert result.updates["k1"].match_count == 0

    @pytest.mark.asyncio
    async def test_service_object_matched_case_insensitively(self, reconciler, mock_provider):
        mock_provider.match_keywords.return_value = MatchServiceResult(
            analysis=[KeywordAnalysis(object="URGENT", blur_pair=1, fuzzy_segments=["asap"])],
        )
        result = await reconciler.reconcile("do it asap", [Keyword(id="k1", text="urgent")], "en", "en")
        assert result.updates["k1"].fuzzy_count == 1

    @pytest.mark.asyncio
    async def test_empty_keywords(self, reconciler, mock_provider):
        result = await reconciler.reconcile("text", [], "en", "en")
        assert result.updates == {}
        mock_provider.match_keywords.assert_not_awaited()


class TestCrossLanguage:
    @pytest.mark.asyncio
    async def test_translated_text_drives_exact_pass(self, reconciler, mock_provider):
        mock_provider.translate.return_value = {"紧急": "urgent"}
        kw = Keyword(id="k1", text="紧急")
        result = await reconciler.reconcile("This is urgent", [kw], "en", "zh")

        mock_provider.translate.assert_awaited_once_with(["紧急"], "en")
        update = result.updates["k1"]
        assert update.detected is True
        assert update.translated_text == "urgent"
        assert update.source_text == "紧急"
        assert result.translations == {"紧急": "urgent"}
        mock_provider.match_keywords.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_original_text_not_searched(self, reconciler, mock_provider):
        mock_provider.translate.return_value = {"紧急": "urgent"}
        mock_provider.match_keywords.return_value = MatchServiceResult()
        result = await reconciler.reconcile("紧急 but in English", [Keyword(id="k1", text="紧急")], "en", "zh")
        assert result.updates["k1"].detected is False
        mock_provider.match_keywords.assert_awaited_once_with("紧急 but in English", ["urgent"])

    @pytest.mark.asyncio
    async def test_translation_failure_falls_back_silently(self, reconciler, mock_provider):
        mock_provider.translate.side_effect = TranslationFailure("down")
        result = await reconciler.reconcile("紧急情况", [Keyword(id="k1", text="紧急")], "en", "zh")
        assert result.updates["k1"].detected is True
        assert result.updates["k1"].translated_text is None
        assert result.error is None

    @pytest.mark.asyncio
    async def test_translation_transport_error_falls_back(self, reconciler, mock_provider):
        mock_provider.translate.side_effect = httpx.ConnectError("Connection refused")
        result = await reconciler.reconcile("紧急情况", [Keyword(id="k1", text="紧急")], "en", "zh")
        assert result.updates["k1"].detected is True
        assert result.error is None

    @pytest.mark.asyncio
    async def test_same_primary_subtag_skips_translation(self, reconciler, mock_provider):
        await reconciler.reconcile("数字化转型", [Keyword(id="k1", text="数字化转型")], "zh-CN", "zh")
        mock_provider.translate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_audio_language_skips_translation(self, reconciler, mock_provider):
        await reconciler.reconcile("text", [Keyword(id="k1", text="text")], None, "zh")
        mock_provider.translate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_shared_translation_tracked_per_record(self, reconciler, mock_provider):
        mock_provider.translate.return_value = {"紧急": "urgent", "急迫": "urgent"}
        mock_provider.match_keywords.return_value = MatchServiceResult(
            analysis=[KeywordAnalysis(object="urgent", blur_pair=1, fuzzy_segments=["asap"])],
        )
        keywords = [Keyword(id="k1", text="紧急"), Keyword(id="k2", text="急迫")]
        result = await reconciler.reconcile("please do it asap", keywords, "en", "zh")

        mock_provider.match_keywords.assert_awaited_once_with("please do it asap", ["urgent"])
        assert result.updates["k1"].fuzzy_count == 1
        assert result.updates["k2"].fuzzy_count == 1
        assert result.updates["k1"].source_text == "紧急"
        assert result.updates["k2"].source_text == "急迫"

    @pytest.mark.asyncio
    async def test_translation_target_is_audio_language(self, mock_provider):
        mock_provider.translate = AsyncMock(return_value={"Urgent": "緊急"})
        reconciler = MatchReconciler(mock_provider, TranslationBridge(mock_provider))
        result = await reconciler.reconcile("緊急です", [Keyword(id="k1", text="Urgent")], "ja", "en")
        mock_provider.translate.assert_awaited_once_with(["Urgent"], "ja")
        assert result.updates["k1"].detected is True
