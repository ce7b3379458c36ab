SUBSTRING_BASE_SCORE = 100
SHORT_TEXT_BONUS_LENGTH = 100
SUBSEQUENCE_HIT_SCORE = 10
CONSECUTIVE_BONUS = 5


def fuzzy_match(text: str, query: str) -> tuple[bool, int]:
    """Score how well ``query`` matches ``text``.

    A case-insensitive substring hit scores 100 plus a bonus for short texts.
    Otherwise the query must appear as a subsequence of the text; each matched
    character scores 10 plus 5 per character already matched in the current
    contiguous run.
    """
    if not query:
        return True, 0

    lowered_text = text.lower()
    lowered_query = query.lower()

    if lowered_query in lowered_text:
        return True, SUBSTRING_BASE_SCORE + max(0, SHORT_TEXT_BONUS_LENGTH - len(text))

    score = 0
    run = 0
    query_index = 0
    for ch in lowered_text:
        if query_index == len(lowered_query):
            break
        if ch == lowered_query[query_index]:
            score += SUBSEQUENCE_HIT_SCORE + CONSECUTIVE_BONUS * run
            run += 1
            query_index += 1
        else:
            run = 0

    matches = query_index == len(lowered_query)
    return matches, score if matches else 0
