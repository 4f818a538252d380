from models.evaluation import AnswerEvaluation
from models.question import Question

POINTS_PER_CORRECT_ANSWER = 10


def evaluate_answer(question: Question, selected_index: int) -> AnswerEvaluation:
    """
    Score a single selection against a question.

    A correct answer earns a fixed reward; anything else earns nothing.
    ``selected_index`` must already be within the question's options.

    Args:
        question: The question being answered
        selected_index: Position of the chosen option

    Returns:
        AnswerEvaluation with the outcome and the points awarded
    """
    if selected_index == question.correct_answer_index:
        return AnswerEvaluation(correct=True, points_awarded=POINTS_PER_CORRECT_ANSWER)
    return AnswerEvaluation(correct=False, points_awarded=0)
