SENTENCE_BREAK_RATIO = 0.7


def chunk_text(text: str, chunk_size: int = 2000, overlap: int = 200) -> list[str]:
    """Split text into overlapping character chunks with simple natural break detection."""
    chunks: list[str] = []
    start = 0
    text_len = len(text)

    while start < text_len:
        end = min(start + chunk_size, text_len)

        if end < text_len:
            break_point = end
            for i in range(end, max(start, end - 100), -1):
                if text[i] in ["\n", ".", " "]:
                    break_point = i + 1
                    break
            end = break_point

        chunks.append(text[start:end])
        if end >= text_len:
            break
        start = max(end - overlap, start + 1)

    return chunks


def chunk_for_distillation(text: str, max_length: int = 4000, overlap: int = 500) -> list[str]:
    """
    Chunk a document for knowledge distillation.

    Each chunk ends at the last sentence or line break inside the window when
    that break falls past 70% of the window, so distilled points rarely start
    mid-sentence.
    """
    normalized = (text or "").replace("\r\n", "\n").strip()
    if not normalized:
        return []
    if len(normalized) <= max_length:
        return [normalized]

    chunks: list[str] = []
    start = 0
    while start < len(normalized):
        end = min(start + max_length, len(normalized))
        if end < len(normalized):
            window = normalized[start:end]
            last_break = max(window.rfind("."), window.rfind("\n"))
            if last_break > max_length * SENTENCE_BREAK_RATIO:
                end = start + last_break + 1

        chunk = normalized[start:end].strip()
        if chunk:
            chunks.append(chunk)
        if end >= len(normalized):
            break
        start = max(end - overlap, start + 1)
    return chunks
