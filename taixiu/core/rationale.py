"""Render structured reasons into human-readable text.

Reasons travel through the core as ``Reason(code, params)`` records; only the
presentation layer turns them into sentences, in English or Vietnamese.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping

from taixiu.core.types import Outcome, Reason, ReasonCode, RiskLevel

OUTCOME_NAMES: Dict[str, Dict[Outcome, str]] = {
    "en": {Outcome.HIGH: "High", Outcome.LOW: "Low"},
    "vi": {Outcome.HIGH: "Tài", Outcome.LOW: "Xỉu"},
}

RISK_NAMES: Dict[str, Dict[RiskLevel, str]] = {
    "en": {
        RiskLevel.VERY_LOW: "Very low",
        RiskLevel.LOW: "Low",
        RiskLevel.MEDIUM: "Medium",
        RiskLevel.HIGH: "High",
        RiskLevel.VERY_HIGH: "Very high",
    },
    "vi": {
        RiskLevel.VERY_LOW: "Rất thấp",
        RiskLevel.LOW: "Thấp",
        RiskLevel.MEDIUM: "Trung bình",
        RiskLevel.HIGH: "Cao",
        RiskLevel.VERY_HIGH: "Rất cao",
    },
}

TEMPLATES: Dict[str, Dict[ReasonCode, str]] = {
    "en": {
        ReasonCode.INSUFFICIENT_DATA: "insufficient data ({available}/{required} rounds)",
        ReasonCode.WINDOW_MAJORITY: "{count} of the last {window} rounds were {side}",
        ReasonCode.THREE_IN_A_ROW: "three in a row, expecting {side}",
        ReasonCode.ZIGZAG: "alternation over the last {window} rounds, expecting {side}",
        ReasonCode.AVERAGE_TOTAL: "average total {average:.2f} over {window} rounds favours {side}",
        ReasonCode.TOTALS_TREND: "totals trending {direction} over {window} rounds, favours {side}",
        ReasonCode.EXTREME_TOTAL: "extreme last total {total}, favours {side}",
        ReasonCode.TOTALS_ONE_SIDED: "every total of the last {window} rounds sat on the {side} side",
        ReasonCode.PARITY_BIAS: "even totals ratio {ratio:.2f}, favours {side}",
        ReasonCode.DICE_AVERAGE: "average die face {average:.2f}, favours {side}",
        ReasonCode.DICE_FACES: "{high_faces} high faces on the last roll, favours {side}",
        ReasonCode.STREAK_REVERSAL: "streak of {length}, expecting reversal to {side}",
        ReasonCode.STREAK_CONTINUATION: "streak of {length}, expecting it to continue with {side}",
        ReasonCode.LITERAL_MOTIF: "motif {motif} seen {count} times, favours {side}",
        ReasonCode.LOW_ENTROPY: "low entropy {entropy}, expecting reversal to {side}",
        ReasonCode.TOTAL_ZSCORE: "last total z-score {z}, favours {side}",
        ReasonCode.SCORE_MARGIN: "rule score {high:.1f} High vs {low:.1f} Low, picking {side}",
        ReasonCode.AVERAGE_TIEBREAK: "average total {average:.2f} breaks the tie towards {side}",
        ReasonCode.ALTERNATE_LAST: "no clear signal, alternating to {side}",
        ReasonCode.MARKOV: "order-{order} Markov after {context}: {side} with p={probability}",
        ReasonCode.MOTIF_REPEAT: "motif {motif} repeated {count}x in the last {window} rounds, next {side}",
        ReasonCode.RECENCY_WEIGHTED: "recency-weighted majority {side} (dominance {dominance})",
        ReasonCode.STREAK_BREAK: "streak of {length} breaks with p={probability}, expecting {side}",
        ReasonCode.STREAK_HOLD: "streak of {length} holds (break p={probability}), expecting {side}",
        ReasonCode.AUTOREGRESSION: "autoregression projects total {projected}, favours {side}",
        ReasonCode.MA_CROSSOVER: "short MA {short} vs long MA {long}, favours {side}",
        ReasonCode.RSI_OVERBOUGHT: "RSI {rsi} overbought, expecting {side}",
        ReasonCode.RSI_OVERSOLD: "RSI {rsi} oversold, expecting {side}",
        ReasonCode.RSI_NEUTRAL: "RSI {rsi} neutral, holding {side}",
        ReasonCode.BRIDGE: "bridge {bridge} ({label}) over {count} runs, next {side}",
        ReasonCode.LONG_STREAK_BRIDGE: "long streak bridge of {length}, riding {side}",
        ReasonCode.NO_BRIDGE: "no bridge pattern, defaulting to {side}",
        ReasonCode.META: "meta-learner P(High)={probability}, favours {side}",
        ReasonCode.AGREEMENT: "agreement {percent}% ({agreeing}/{voters} voters)",
    },
    "vi": {
        ReasonCode.INSUFFICIENT_DATA: "Thiếu dữ liệu ({available}/{required} phiên)",
        ReasonCode.WINDOW_MAJORITY: "{count}/{window} phiên gần nhất ra {side}",
        ReasonCode.THREE_IN_A_ROW: "3 phiên liên tiếp giống nhau → {side}",
        ReasonCode.ZIGZAG: "Cầu đảo 1-1 trong {window} phiên → {side}",
        ReasonCode.AVERAGE_TOTAL: "Tổng trung bình {average:.2f} ({window} phiên) → {side}",
        ReasonCode.TOTALS_TREND: "Tổng điểm xu hướng {direction} ({window} phiên) → {side}",
        ReasonCode.EXTREME_TOTAL: "Tổng cực trị {total} → {side}",
        ReasonCode.TOTALS_ONE_SIDED: "{window} phiên đều nghiêng về {side}",
        ReasonCode.PARITY_BIAS: "Tỷ lệ tổng chẵn {ratio:.2f} → {side}",
        ReasonCode.DICE_AVERAGE: "Xúc xắc trung bình {average:.2f} → {side}",
        ReasonCode.DICE_FACES: "{high_faces} mặt cao ở phiên cuối → {side}",
        ReasonCode.STREAK_REVERSAL: "Chuỗi {length} → bẻ cầu {side}",
        ReasonCode.STREAK_CONTINUATION: "Chuỗi {length} → theo cầu {side}",
        ReasonCode.LITERAL_MOTIF: "Mẫu {motif} xuất hiện {count} lần → {side}",
        ReasonCode.LOW_ENTROPY: "Entropy thấp {entropy} → đảo {side}",
        ReasonCode.TOTAL_ZSCORE: "Z-score tổng cuối {z} → {side}",
        ReasonCode.SCORE_MARGIN: "Điểm luật Tài {high:.1f} / Xỉu {low:.1f} → {side}",
        ReasonCode.AVERAGE_TIEBREAK: "Tổng trung bình {average:.2f} → {side}",
        ReasonCode.ALTERNATE_LAST: "Không có tín hiệu rõ → đảo {side}",
        ReasonCode.MARKOV: "Markov bậc {order} sau {context}: {side} (p={probability})",
        ReasonCode.MOTIF_REPEAT: "Mẫu {motif} lặp {count} lần trong {window} phiên → {side}",
        ReasonCode.RECENCY_WEIGHTED: "Trọng số gần đây nghiêng {side} ({dominance})",
        ReasonCode.STREAK_BREAK: "Chuỗi {length} dễ gãy (p={probability}) → {side}",
        ReasonCode.STREAK_HOLD: "Chuỗi {length} còn giữ (p gãy={probability}) → {side}",
        ReasonCode.AUTOREGRESSION: "Tự hồi quy dự tổng {projected} → {side}",
        ReasonCode.MA_CROSSOVER: "MA ngắn {short} / MA dài {long} → {side}",
        ReasonCode.RSI_OVERBOUGHT: "RSI {rsi} quá mua → {side}",
        ReasonCode.RSI_OVERSOLD: "RSI {rsi} quá bán → {side}",
        ReasonCode.RSI_NEUTRAL: "RSI {rsi} trung tính → giữ {side}",
        ReasonCode.BRIDGE: "Cầu {bridge} lặp {count} nhịp → {side}",
        ReasonCode.LONG_STREAK_BRIDGE: "Cầu bệt {length} phiên → theo {side}",
        ReasonCode.NO_BRIDGE: "Không nhận ra cầu → {side}",
        ReasonCode.META: "Hồi quy logistic P(Tài)={probability} → {side}",
        ReasonCode.AGREEMENT: "Đồng thuận {percent}% ({agreeing}/{voters})",
    },
}

SUPPORTED_LOCALES = tuple(TEMPLATES)


def _localize(value: Any, locale: str) -> Any:
    if isinstance(value, Outcome):
        return OUTCOME_NAMES[locale][value]
    if isinstance(value, Enum):
        return value.value
    return value


def render(reason: Reason, locale: str = "en") -> str:
    if locale not in TEMPLATES:
        locale = "en"
    template = TEMPLATES[locale].get(reason.code)
    params: Mapping[str, Any] = {k: _localize(v, locale) for k, v in reason.params.items()}
    if template is None:
        return reason.code.value
    try:
        return template.format(**params)
    except (KeyError, ValueError):
        return f"{reason.code.value} {dict(params)}"


def render_all(reasons: Iterable[Reason], locale: str = "en") -> List[str]:
    return [render(reason, locale) for reason in reasons]


def outcome_name(outcome: Outcome, locale: str = "en") -> str:
    return OUTCOME_NAMES.get(locale, OUTCOME_NAMES["en"])[outcome]


def risk_name(level: RiskLevel, locale: str = "en") -> str:
    return RISK_NAMES.get(locale, RISK_NAMES["en"])[level]
