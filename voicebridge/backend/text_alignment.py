from typing import Dict, List


STRIP_CHARS = ',.!?;:"'


def levenshtein_distance(first: str, second: str) -> int:
    rows = len(first)
    cols = len(second)
    previous = list(range(cols + 1))
    for i in range(1, rows + 1):
        current = [i] + [0] * cols
        for j in range(1, cols + 1):
            if first[i - 1] == second[j - 1]:
                current[j] = previous[j - 1]
            else:
                current[j] = min(previous[j - 1], previous[j], current[j - 1]) + 1
        previous = current
    return previous[cols]


def tokenize(text: str) -> List[str]:
    words = []
    for raw in (text or "").lower().split():
        word = raw.strip(STRIP_CHARS)
        if word:
            words.append(word)
    return words


def calculate_accuracy(transcribed: str, target: str) -> float:
    """Percentage of positions where the spoken word matches the target word."""
    spoken = tokenize(transcribed)
    expected = tokenize(target)
    total = max(len(spoken), len(expected))
    if total == 0:
        return 0.0
    correct = sum(1 for left, right in zip(spoken, expected) if left == right)
    return correct / total * 100


def compare_words(transcribed: str, target: str) -> List[Dict[str, str]]:
    spoken = tokenize(transcribed)
    expected = tokenize(target)
    result: List[Dict[str, str]] = []
    for index in range(max(len(spoken), len(expected))):
        if index < len(expected) and index < len(spoken):
            if expected[index] == spoken[index]:
                result.append({"word": expected[index], "status": "correct"})
            else:
                result.append(
                    {
                        "word": expected[index],
                        "status": "incorrect",
                        "transcribedWord": spoken[index],
                    }
                )
        elif index >= len(spoken):
            result.append({"word": expected[index], "status": "missing"})
        else:
            result.append({"word": spoken[index], "status": "extra"})
    return result


def format_clock(seconds: float) -> str:
    total = max(int(seconds or 0), 0)
    return f"{total // 60}:{total % 60:02d}"
