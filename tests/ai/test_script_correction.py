"""Tests for offline Ethiopic OCR correction."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from services.ai.exceptions import ProviderUnavailable, QuotaExceeded
from services.ai.script_correction import (
    REFINE_PROMPT,
    ProviderTextRefiner,
    ScriptCorrector,
    apply_corrections,
    contains_ethiopic,
)


class TestContainsEthiopic:
    @pytest.mark.parametrize(
        "text", ["ሰላም", "Chapter 1 ምዕራፍ", "ⶀ", "ꬁ"]
    )
    def test_detects_script(self, text):
        assert contains_ethiopic(text)

    @pytest.mark.parametrize("text", ["", "Plain English", "Ünïcödé", "1234"])
    def test_ignores_other_text(self, text):
        assert not contains_ethiopic(text)


class TestApplyCorrections:
    def test_double_wordspace_becomes_full_stop(self):
        assert apply_corrections("ሰላም፡፡") == "ሰላም።"

    def test_ascii_punctuation_after_syllable(self):
        assert apply_corrections("ሰላም, ዓለም; ነው::") == "ሰላም፣ ዓለም፤ ነው።"

    def test_preface_colon(self):
        assert apply_corrections("ምሳሌ:-") == "ምሳሌ፦"

    def test_lookalike_between_syllables(self):
        assert apply_corrections("ሰ0ም") == "ሰዐም"
        assert apply_corrections("ለ+ማሪ") == "ለተማሪ"

    def test_adjacent_lookalikes_are_all_replaced(self):
        assert apply_corrections("ሰhmም") == "ሰከጠም"

    def test_latin_words_are_untouched(self):
        text = "Page 10, see home: ok :-) ሰላም"
        assert apply_corrections(text) == text

    def test_lookalike_at_word_edge_is_untouched(self):
        assert apply_corrections("ሰላም 7") == "ሰላም 7"


@pytest.mark.asyncio
class TestScriptCorrector:
    async def test_text_without_script_is_returned_byte_for_byte(self):
        refiner = MagicMock()
        refiner.refine = AsyncMock()
        corrector = ScriptCorrector(refiner)
        text = "Chapter 1, page 3; done::"

        assert await corrector.correct(text) is text
        refiner.refine.assert_not_awaited()

    async def test_offline_table_applies_without_refiner(self):
        corrector = ScriptCorrector()
        assert await corrector.correct("ሰላም, ዓለም") == "ሰላም፣ ዓለም"

    async def test_refined_text_is_then_corrected(self):
        refiner = MagicMock()
        refiner.refine = AsyncMock(return_value="ሰላም;")
        corrector = ScriptCorrector(refiner)

        assert await corrector.correct("ሰላ ም") == "ሰላም፤"

    @pytest.mark.parametrize("error", [QuotaExceeded(), ProviderUnavailable()])
    async def test_refiner_failure_degrades_to_offline_table(self, error):
        refiner = MagicMock()
        refiner.refine = AsyncMock(side_effect=error)
        corrector = ScriptCorrector(refiner)

        assert await corrector.correct("ሰላም,") == "ሰላም፣"

    async def test_empty_refinement_is_ignored(self):
        refiner = MagicMock()
        refiner.refine = AsyncMock(return_value="   ")
        corrector = ScriptCorrector(refiner)

        assert await corrector.correct("ሰላም,") == "ሰላም፣"


@pytest.mark.asyncio
async def test_provider_text_refiner_uses_completion():
    provider = MagicMock()
    provider.complete = AsyncMock(return_value="ሰላም")

    result = await ProviderTextRefiner(provider).refine("ሰላ ም")

    assert result == "ሰላም"
    provider.complete.assert_awaited_once_with(REFINE_PROMPT, "ሰላ ም", temperature=0.0)
