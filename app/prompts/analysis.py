from typing import Any, Dict, List

ANALYSIS_INSTRUCTION = (
    "Please identify any visible words or objects in this image. "
    "For each word or object, provide its definition and a sample sentence using it. "
    "Format the response as a JSON array with objects containing "
    "'word', 'definition', and 'sampleSentence' fields."
)


def build_messages(image_url: str) -> List[Dict[str, Any]]:
    # 圖片一律用 URL 傳給模型，不內嵌 bytes
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": ANALYSIS_INSTRUCTION},
                {"type": "image_url", "image_url": {"url": image_url}},
            ],
        }
    ]
