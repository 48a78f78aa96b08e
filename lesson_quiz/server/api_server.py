"""FastAPI server that exposes learner endpoints."""

from __future__ import annotations

from dataclasses import asdict
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
import uvicorn

from lesson_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from lesson_quiz.core.question_renderer import QuestionView
from lesson_quiz.core.quiz_manager import QuizManager
from lesson_quiz.core.services.grading import GradingResult, pass_message
from lesson_quiz.core.services.quiz_session import Transition

_LEARNER_PAGE_HTML = """<!doctype html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <title>Lesson Quiz</title>
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <style>
      :root { font-family: 'Inter', system-ui, sans-serif; background: #0b1120; color: #f5f7ff; }
      body { margin: 0; padding: 1.5rem; display: flex; flex-direction: column; gap: 1rem; }
      .card { background: #111a30; border-radius: 0.75rem; padding: 1.5rem; box-shadow: 0 0.5rem 1.5rem rgba(0, 0, 0, 0.4); }
      .hidden { display: none; }
      .primary-button { border: none; border-radius: 0.75rem; padding: 0.85rem 1.5rem; font-size: 1rem; background: #1f9aa5; color: #fff; cursor: pointer; }
      .primary-button:disabled { opacity: 0.6; cursor: not-allowed; }
      .question { margin-bottom: 1.5rem; line-height: 1.6; }
      .number-label { color: #94a3b8; font-size: 0.9rem; }
      .option { display: block; margin: 0.35rem 0; }
      .option.correct { color: #4ade80; }
      .option.wrong { color: #f87171; }
      .gap-correct { color: #4ade80; }
      .gap-incorrect { color: #f87171; }
      .math-error { color: #f87171; }
      #status { min-height: 1.25rem; color: #facc15; }
    </style>
    <script>
      window.MathJax = { tex: { inlineMath: [['\\\\(','\\\\)']], displayMath: [['\\\\[','\\\\]']] } };
    </script>
    <script defer src=\"https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js\"></script>
  </head>
  <body>
    <section class=\"card\">
      <h1 id=\"title\">Lesson Quiz</h1>
      <div id=\"questions\"></div>
      <p id=\"status\"></p>
      <div id=\"actions\"></div>
    </section>
    <script>
      const titleEl = document.getElementById('title');
      const questionsEl = document.getElementById('questions');
      const statusEl = document.getElementById('status');
      const actionsEl = document.getElementById('actions');

      async function call(method, path, body) {
        const response = await fetch(path, {
          method,
          headers: { 'Content-Type': 'application/json' },
          body: body ? JSON.stringify(body) : undefined
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          statusEl.textContent = payload.detail || 'Request failed.';
          return null;
        }
        statusEl.textContent = '';
        return payload;
      }

      function actionButton(label, path) {
        const button = document.createElement('button');
        button.className = 'primary-button';
        button.textContent = label;
        button.addEventListener('click', async () => {
          if (await call('POST', path)) refresh();
        });
        actionsEl.appendChild(button);
      }

      function renderQuestion(view) {
        const wrapper = document.createElement('div');
        wrapper.className = 'question';
        wrapper.innerHTML = `<div class=\"number-label\">${view.number_label}</div>` + view.prompt_html + (view.content_html || '');
        view.options.forEach(option => {
          const label = document.createElement('label');
          label.className = 'option';
          if (option.is_correct === true) label.classList.add('correct');
          if (option.is_correct === false && option.selected) label.classList.add('wrong');
          const input = document.createElement('input');
          input.type = view.question_type === 'multiple_choice' ? 'checkbox' : 'radio';
          input.name = `option-${view.question_id}`;
          input.checked = option.selected;
          input.disabled = view.revealed;
          input.addEventListener('change', () => {
            const key = input.type === 'checkbox' ? 'toggle_option_index' : 'selected_option_index';
            call('POST', '/answer', { question_id: view.question_id, [key]: option.display_index });
          });
          label.appendChild(input);
          const text = document.createElement('span');
          text.innerHTML = `${option.letter}. ${option.html}`;
          label.appendChild(text);
          wrapper.appendChild(label);
        });
        const freeText = view.question_type === 'short_answer' || view.question_type === 'long_text'
          || (view.question_type === 'media_question' && view.options.length === 0);
        if (freeText) {
          const field = document.createElement(view.question_type === 'long_text' ? 'textarea' : 'input');
          field.value = view.text_answer || '';
          field.disabled = view.revealed;
          field.addEventListener('change', () => call('POST', '/answer', { question_id: view.question_id, text: field.value }));
          wrapper.appendChild(field);
        }
        wrapper.querySelectorAll('[data-gap-index]').forEach(field => {
          if (!field.matches('select, input')) return;
          field.disabled = view.revealed;
          field.addEventListener('change', () => call('POST', '/answer', {
            question_id: view.question_id,
            gap_index: Number(field.dataset.gapIndex),
            gap_value: field.value
          }));
        });
        if (view.revealed && view.explanation_html) {
          wrapper.insertAdjacentHTML('beforeend', `<div class=\"explanation\">${view.explanation_html}</div>`);
        }
        questionsEl.appendChild(wrapper);
      }

      async function refresh() {
        const session = await call('GET', '/session');
        if (!session) return;
        titleEl.textContent = session.title || 'Lesson Quiz';
        questionsEl.innerHTML = '';
        actionsEl.innerHTML = '';
        if (session.state === 'stalled') {
          statusEl.textContent = 'Waiting for the quiz content…';
          setTimeout(refresh, 2000);
          return;
        }
        if (session.state === 'title') {
          actionButton('Start', '/start');
        } else if (session.state === 'open' || session.state === 'checked') {
          const views = await call('GET', '/questions');
          (views || []).forEach(renderQuestion);
          actionButton(session.state === 'open' ? 'Check all' : 'Retry', session.state === 'open' ? '/check-all' : '/retake');
        } else if (session.state === 'question' || session.state === 'result') {
          const view = await call('GET', '/question');
          if (view) renderQuestion(view);
          actionButton(session.state === 'question' ? 'Check' : 'Next', session.state === 'question' ? '/check' : '/next');
        } else if (session.state === 'completed') {
          actionButton('Retake', '/retake');
        }
        if (session.state === 'completed' || session.state === 'checked') {
          const result = await call('GET', '/result');
          if (result) statusEl.textContent = result.message;
        }
        if (window.MathJax && window.MathJax.typesetPromise) {
          window.MathJax.typesetPromise([questionsEl]).catch(err => console.warn('MathJax typeset error:', err));
        }
      }

      refresh();
    </script>
  </body>
</html>
"""


class AnswerPayload(BaseModel):
    """Payload schema for one captured answer; exactly one kind is set."""

    question_id: str
    selected_option_index: int | None = None
    toggle_option_index: int | None = None
    text: str | None = None
    gap_index: int | None = None
    gap_value: str | None = None


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def _transition_response(transition: Transition) -> dict[str, object]:
    if not transition.accepted:
        raise HTTPException(status_code=409, detail=transition.reason)
    session = transition.session
    return {
        "accepted": True,
        "state": session.state.value,
        "revealed": session.revealed,
        "current_index": session.current_index,
    }


def _view_response(view: QuestionView) -> dict[str, object]:
    return asdict(view)


def _result_response(result: GradingResult) -> dict[str, object]:
    statistics = result.statistics
    return {
        "score": result.score,
        "score_percentage": result.score_percentage,
        "passed": result.passed,
        "status": result.status.value,
        "message": pass_message(result),
        "statistics": {
            **asdict(statistics),
            "total_items": statistics.total_items,
            "correct_items": statistics.correct_items,
        },
        "items": [
            {
                "question_id": item.question_id,
                "number": item.number,
                "status": item.status.value,
                "gap_index": item.gap_index,
                "expected": item.expected,
            }
            for item in result.items
        ],
        "feedback": result.feedback,
    }


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title="Lesson Quiz API", version="0.1.0")
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    @app.get("/", response_class=HTMLResponse)
    def serve_learner_page() -> str:
        return _LEARNER_PAGE_HTML

    @app.get("/session")
    def get_session(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        if not manager.is_ready():
            manager.load_content()
        session = manager.get_session()
        document = manager.get_document()
        return {
            "session_id": session.session_id,
            "state": session.state.value,
            "ready": session.is_ready,
            "title": session.title,
            "display_mode": session.display_mode.value,
            "attempt": session.attempt,
            "revealed": session.revealed,
            "question_count": len(session.questions),
            "total_items": manager.get_total_items(),
            "time_limit_minutes": document.time_limit_minutes if document else None,
            "media_url": document.media_url if document else None,
            "media_type": document.media_type if document else None,
        }

    @app.get("/question")
    def get_question(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object] | None:
        view = manager.get_current_view()
        return _view_response(view) if view is not None else None

    @app.get("/questions")
    def get_questions(manager: QuizManager = Depends(quiz_manager_dep)) -> list[dict[str, object]]:
        return [_view_response(view) for view in manager.get_all_views()]

    @app.get("/questions/{question_id}")
    def get_question_by_id(
        question_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            return _view_response(manager.get_question_view(question_id))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=f"Unknown question '{question_id}'.") from exc

    @app.post("/start")
    def start_quiz(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _transition_response(manager.start_quiz())

    @app.post("/answer", status_code=201)
    def submit_answer(
        payload: AnswerPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        session = manager.get_session()
        if session.is_ready and session.find_question(payload.question_id) is None:
            raise HTTPException(status_code=404, detail=f"Unknown question '{payload.question_id}'.")

        kinds = [
            payload.selected_option_index is not None,
            payload.toggle_option_index is not None,
            payload.text is not None,
            payload.gap_index is not None,
        ]
        if sum(kinds) != 1:
            raise HTTPException(status_code=422, detail="Submit exactly one kind of answer.")

        if payload.selected_option_index is not None:
            transition = manager.select_option(payload.question_id, payload.selected_option_index)
        elif payload.toggle_option_index is not None:
            transition = manager.toggle_option(payload.question_id, payload.toggle_option_index)
        elif payload.text is not None:
            transition = manager.enter_text(payload.question_id, payload.text)
        else:
            transition = manager.fill_gap(payload.question_id, payload.gap_index, payload.gap_value or "")
        return _transition_response(transition)

    @app.post("/check")
    def check_answer(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _transition_response(manager.check_answer())

    @app.post("/next")
    def next_question(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _transition_response(manager.advance())

    @app.post("/check-all")
    def check_all(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _transition_response(manager.check_all())

    @app.post("/retake")
    def retake(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _transition_response(manager.retake())

    @app.get("/result")
    def get_result(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        result = manager.get_grading()
        if result is None:
            raise HTTPException(status_code=409, detail="Results are not available yet.")
        return _result_response(result)

    return app


def start_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="QuizApiServer", daemon=True)
    thread.start()
    return thread
