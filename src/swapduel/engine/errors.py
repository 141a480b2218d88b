from __future__ import annotations


class SwapDuelError(Exception):
    pass


class MatchRuleError(SwapDuelError):
    """An action that is invalid for the current match state.

    These are returned in ``StepResult.error`` rather than raised; the state
    is left untouched.
    """


class OutOfTurnError(MatchRuleError):
    pass


class AlreadyRevealedError(MatchRuleError):
    pass


class AlreadySwappedError(MatchRuleError):
    pass


class MatchAlreadyCompleteError(MatchRuleError):
    pass


class IllegalActionError(MatchRuleError):
    pass


class DecisionProviderError(SwapDuelError):
    """Network, protocol or parse failure in an opponent decision provider."""


class DecisionProviderTimeout(DecisionProviderError):
    pass
