"""
単語照合サービスのテスト
"""
from word_weaver.models.schemas import ExtractionResult
from word_weaver.services.word_validator import validate_words

WORD_CLOUD = ("weather", "sunny", "cat", "cloudy", "happy")


class TestValidateWords:
    """validate_wordsのテストクラス"""

    def test_all_words_in_cloud(self):
        """すべての単語が単語群にある場合は採用"""
        extraction = ExtractionResult(extracted_words=("weather", "sunny"), matched=True)

        result = validate_words(extraction, WORD_CLOUD)

        assert result.accepted is True
        assert result.invalid_words == ()

    def test_case_insensitive(self):
        """大文字・小文字を区別しない"""
        extraction = ExtractionResult(extracted_words=("Weather", "SUNNY"), matched=True)

        assert validate_words(extraction, WORD_CLOUD).accepted is True

    def test_one_word_missing_rejects_all(self):
        """1語でも単語群にない場合は全体を不採用"""
        extraction = ExtractionResult(extracted_words=("weather", "rainy"), matched=True)

        result = validate_words(extraction, WORD_CLOUD)

        assert result.accepted is False
        assert result.invalid_words == ("rainy",)

    def test_not_matched(self):
        """骨組みに一致しなかった場合は不採用"""
        result = validate_words(ExtractionResult.no_match(), WORD_CLOUD)

        assert result.accepted is False
        assert result.invalid_words == ()

    def test_semantically_odd_but_in_cloud(self):
        """意味が通らなくても単語群にあれば採用（意味の判定は評価AIが行う）"""
        extraction = ExtractionResult(extracted_words=("cat", "happy"), matched=True)

        assert validate_words(extraction, WORD_CLOUD).accepted is True

    def test_mixed_case_cloud(self):
        """単語群側に大文字が含まれていても一致する"""
        lower = ExtractionResult(extracted_words=("run",), matched=True)
        upper = ExtractionResult(extracted_words=("RUN",), matched=True)

        assert validate_words(lower, ("Run",)).accepted is True
        assert validate_words(lower, ("RUN",)).accepted is True
        assert validate_words(upper, ("run",)).accepted is True
        assert validate_words(upper, ("Run",)).invalid_words == ()
