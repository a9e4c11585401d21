from typing import Sequence

from app.schemas.analysis import AnalysisResult

NO_RESULTS = "No words or objects were found in this image."


def render_card(result: AnalysisResult) -> str:
    return "\n".join([
        f"[{result.word}]",
        f"  Definition: {result.definition}",
        f"  Example:    {result.sample_sentence}",
    ])


def render_results(results: Sequence[AnalysisResult]) -> str:
    # 空清單是正常結果，不是錯誤
    if not results:
        return NO_RESULTS
    return "\n\n".join(render_card(r) for r in results)
