"""Single-page exam client served at ``/``."""

STUDENT_PAGE_HTML = """<!doctype html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <title>ProctorQt Exam</title>
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <style>
      :root { font-family: 'Inter', system-ui, sans-serif; background: #0b1120; color: #f5f7ff; }
      body { margin: 0; padding: 1.5rem; display: flex; flex-direction: column; gap: 1rem; }
      .card { background: #111a30; border-radius: 0.75rem; padding: 1.5rem; box-shadow: 0 0.5rem 1.5rem rgba(0, 0, 0, 0.4); }
      .hidden { display: none; }
      label { display: block; margin-top: 0.75rem; color: #94a3b8; font-size: 0.95rem; }
      input { width: 100%; max-width: 28rem; padding: 0.6rem; border-radius: 0.5rem; border: 1px solid #334155; background: #0b1120; color: #f5f7ff; font-size: 1rem; }
      .primary-button { border: none; border-radius: 0.75rem; padding: 0.85rem 1.5rem; font-size: 1rem; background: #1f9aa5; color: #fff; cursor: pointer; margin-top: 1rem; }
      .primary-button:disabled { opacity: 0.6; cursor: not-allowed; }
      .secondary-button { border: 1px solid #1f9aa5; border-radius: 0.75rem; padding: 0.7rem 1.2rem; background: transparent; color: #f5f7ff; cursor: pointer; }
      .form-status { margin-top: 0.5rem; font-size: 0.95rem; color: #f87171; min-height: 1.25rem; }
      #exam-header { display: flex; justify-content: space-between; align-items: center; }
      #timer { font-size: 1.4rem; font-variant-numeric: tabular-nums; color: #facc15; }
      #timer.low-time { color: #f87171; }
      #question-container { min-height: 6rem; font-size: 1.1rem; line-height: 1.6; }
      .options-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(220px, 1fr)); gap: 0.75rem; }
      .option-button { border: 2px solid transparent; border-radius: 0.75rem; padding: 1rem; font-size: 1rem; background: #1e293b; color: #fff; cursor: pointer; text-align: left; }
      .option-button.selected { border-color: #1f9aa5; background: #134e57; }
      .nav-row { display: flex; gap: 0.75rem; flex-wrap: wrap; margin-top: 1rem; }
      .status-grid { display: grid; grid-template-columns: repeat(auto-fill, 2.5rem); gap: 0.4rem; }
      .status-cell { height: 2.5rem; border-radius: 0.5rem; border: none; color: #fff; cursor: pointer; background: #475569; }
      .status-cell.answered { background: #16a34a; }
      .status-cell.marked-for-review { background: #d97706; }
      .status-cell.current { outline: 2px solid #f5f7ff; }
      #advisory { color: #facc15; min-height: 1.25rem; }
      #exam-error { color: #f87171; min-height: 1.25rem; }
    </style>
    <script>
      window.MathJax = { tex: { inlineMath: [['$','$']], displayMath: [['$$','$$']] }, svg: { fontCache: 'global' } };
    </script>
    <script defer src=\"https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js\"></script>
  </head>
  <body>
    <section class=\"card\" id=\"access-card\">
      <h1>Enter Access Code</h1>
      <label for=\"access-code\">Access code</label>
      <input id=\"access-code\" autocomplete=\"off\" />
      <button id=\"access-button\" class=\"primary-button\">Continue</button>
      <p id=\"access-status\" class=\"form-status\"></p>
    </section>
    <section class=\"card hidden\" id=\"register-card\">
      <h2 id=\"register-title\">Student Registration</h2>
      <p id=\"register-exam\"></p>
      <label for=\"student-name\">Full name</label>
      <input id=\"student-name\" />
      <label for=\"student-email\">Email</label>
      <input id=\"student-email\" type=\"email\" />
      <label for=\"student-roll\">Roll number</label>
      <input id=\"student-roll\" />
      <button id=\"register-button\" class=\"primary-button\">Register</button>
      <p id=\"register-status\" class=\"form-status\"></p>
    </section>
    <section class=\"card hidden\" id=\"start-card\">
      <h2>Ready to begin</h2>
      <p>The exam runs in fullscreen. Leaving fullscreen submits your exam automatically.</p>
      <button id=\"start-button\" class=\"primary-button\">Start Exam</button>
      <p id=\"start-status\" class=\"form-status\"></p>
    </section>
    <section class=\"card hidden\" id=\"exam-card\">
      <div id=\"exam-header\">
        <h2 id=\"exam-title\"></h2>
        <span id=\"timer\">--:--</span>
      </div>
      <p id=\"advisory\"></p>
      <p id=\"question-counter\"></p>
      <div id=\"question-container\">Loading exam…</div>
      <div id=\"options-container\" class=\"options-grid\"></div>
      <div class=\"nav-row\">
        <button id=\"prev-button\" class=\"secondary-button\">Previous</button>
        <button id=\"review-button\" class=\"secondary-button\">Mark for Review</button>
        <button id=\"next-button\" class=\"secondary-button\">Next</button>
        <button id=\"submit-button\" class=\"primary-button\">Submit Exam</button>
      </div>
      <p id=\"exam-error\"></p>
      <h3>Questions</h3>
      <p id=\"status-counts\"></p>
      <div id=\"status-grid\" class=\"status-grid\"></div>
    </section>
    <section class=\"card hidden\" id=\"done-card\">
      <h2>Thank you</h2>
      <p id=\"done-message\">Your exam has been submitted.</p>
      <p id=\"done-result\"></p>
    </section>
    <script>
      const cards = ['access-card', 'register-card', 'start-card', 'exam-card', 'done-card']
        .map(id => document.getElementById(id));
      const timerEl = document.getElementById('timer');
      const advisoryEl = document.getElementById('advisory');
      const questionContainer = document.getElementById('question-container');
      const optionsContainer = document.getElementById('options-container');
      const counterEl = document.getElementById('question-counter');
      const statusGrid = document.getElementById('status-grid');
      const countsEl = document.getElementById('status-counts');
      const examErrorEl = document.getElementById('exam-error');
      const submitButton = document.getElementById('submit-button');

      let accessCode = null;
      let studentId = null;
      let sessionId = null;
      let pollHandle = null;
      let snapshot = null;
      let lastQuestionKey = null;

      function showCard(id) {
        cards.forEach(card => card.classList.toggle('hidden', card.id !== id));
      }

      async function postJson(url, body) {
        const response = await fetch(url, {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify(body || {})
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          const detail = typeof payload.detail === 'string' ? payload.detail : 'Request failed. Please try again.';
          throw new Error(detail);
        }
        return payload;
      }

      async function verifyAccess() {
        const status = document.getElementById('access-status');
        status.textContent = '';
        try {
          accessCode = document.getElementById('access-code').value.trim().toUpperCase();
          const exam = await postJson('/access', { access_code: accessCode });
          document.getElementById('register-exam').textContent = `${exam.name} (${exam.duration_minutes} minutes)`;
          showCard('register-card');
        } catch (error) {
          status.textContent = error.message;
        }
      }

      async function registerStudent() {
        const status = document.getElementById('register-status');
        status.textContent = '';
        try {
          const student = await postJson('/register', {
            access_code: accessCode,
            name: document.getElementById('student-name').value,
            email: document.getElementById('student-email').value,
            roll_number: document.getElementById('student-roll').value
          });
          studentId = student.student_id;
          showCard('start-card');
        } catch (error) {
          status.textContent = error.message;
        }
      }

      async function startExam() {
        const status = document.getElementById('start-status');
        status.textContent = '';
        try {
          if (document.documentElement.requestFullscreen) {
            await document.documentElement.requestFullscreen();
          }
        } catch (error) {
          console.warn('Fullscreen request refused:', error);
        }
        try {
          snapshot = await postJson('/sessions', { access_code: accessCode, student_id: studentId });
          sessionId = snapshot.session_id;
          if (document.fullscreenElement) {
            await reportProctoring({ fullscreen: true });
          }
          showCard('exam-card');
          render(snapshot);
          pollHandle = setInterval(refreshSession, 1000);
        } catch (error) {
          status.textContent = error.message;
        }
      }

      async function reportProctoring(body) {
        if (!sessionId) return;
        try {
          render(await postJson(`/sessions/${sessionId}/proctoring`, body));
        } catch (error) {
          console.error('Error reporting proctoring state:', error);
        }
      }

      async function refreshSession() {
        if (!sessionId) return;
        try {
          const response = await fetch(`/sessions/${sessionId}`);
          if (response.ok) {
            render(await response.json());
          }
        } catch (error) {
          console.error('Error polling session:', error);
        }
      }

      async function sessionAction(path, body) {
        examErrorEl.textContent = '';
        try {
          render(await postJson(`/sessions/${sessionId}/${path}`, body));
        } catch (error) {
          examErrorEl.textContent = error.message;
        }
      }

      async function submitExam() {
        submitButton.disabled = true;
        submitButton.textContent = 'Submitting…';
        await sessionAction('submit', {});
        submitButton.disabled = false;
        submitButton.textContent = 'Submit Exam';
      }

      function renderQuestion(question) {
        const key = `${question.id}|${question.selected_option}|${question.status}`;
        if (key === lastQuestionKey) return;
        lastQuestionKey = key;
        questionContainer.innerHTML = question.question_html;
        optionsContainer.innerHTML = '';
        question.options_html.forEach((optionHtml, index) => {
          const label = question.labels[index];
          const button = document.createElement('button');
          button.className = 'option-button';
          if (question.selected_option === label) button.classList.add('selected');
          button.innerHTML = `<strong>${label}.</strong> ${optionHtml}`;
          button.addEventListener('click', () => sessionAction('select', { question_id: question.id, option: label }));
          optionsContainer.appendChild(button);
        });
        if (window.MathJax && window.MathJax.typesetPromise) {
          window.MathJax.typesetPromise([questionContainer, optionsContainer]).catch(err => console.warn(err));
        }
      }

      function renderStatusGrid(state) {
        statusGrid.innerHTML = '';
        state.statuses.forEach((status, index) => {
          const cell = document.createElement('button');
          cell.className = `status-cell ${status}`;
          if (index === state.current_index) cell.classList.add('current');
          cell.textContent = index + 1;
          cell.addEventListener('click', () => sessionAction('navigate', { index }));
          statusGrid.appendChild(cell);
        });
        const c = state.counts;
        countsEl.textContent = `Answered: ${c.answered} · Marked: ${c.marked_for_review} · Not answered: ${c.not_answered}`;
      }

      function finish(state) {
        if (pollHandle) {
          clearInterval(pollHandle);
          pollHandle = null;
        }
        if (document.fullscreenElement && document.exitFullscreen) {
          document.exitFullscreen().catch(() => {});
        }
        const doneMessage = document.getElementById('done-message');
        const doneResult = document.getElementById('done-result');
        if (state.result) {
          doneMessage.textContent = state.trigger === 'violation'
            ? 'Your exam was submitted automatically after leaving fullscreen.'
            : state.trigger === 'timer' ? 'Time is up. Your exam has been submitted.' : 'Your exam has been submitted.';
          const submittedAt = new Date(state.result.submitted_at).toLocaleString();
          doneResult.textContent = `${state.student.name}, ${state.exam.name}: submitted at ${submittedAt} after ${state.result.time_taken_minutes} minute(s).`;
        } else {
          doneMessage.textContent = state.error || 'This exam session has ended.';
          doneResult.textContent = '';
        }
        showCard('done-card');
      }

      function render(state) {
        if (!state) return;
        snapshot = state;
        document.getElementById('exam-title').textContent = state.exam.name;
        timerEl.textContent = state.remaining_label;
        timerEl.classList.toggle('low-time', state.low_time);
        const latest = state.advisories.length ? state.advisories[state.advisories.length - 1] : null;
        advisoryEl.textContent = latest ? latest.message : '';
        if (state.state === 'completed') {
          finish(state);
          return;
        }
        if (state.state === 'finalizing') {
          examErrorEl.textContent = state.error || 'Submitting your exam…';
          submitButton.textContent = state.error ? 'Retry Submit' : 'Submitting…';
          submitButton.disabled = !state.error;
          return;
        }
        if (state.state === 'loading' || !state.question) {
          questionContainer.textContent = 'Loading exam…';
          return;
        }
        counterEl.textContent = `Question ${state.current_index + 1} of ${state.total_questions}`;
        renderQuestion(state.question);
        renderStatusGrid(state);
        document.getElementById('prev-button').disabled = state.current_index === 0;
        document.getElementById('next-button').disabled = state.current_index >= state.total_questions - 1;
      }

      document.getElementById('access-button').addEventListener('click', verifyAccess);
      document.getElementById('register-button').addEventListener('click', registerStudent);
      document.getElementById('start-button').addEventListener('click', startExam);
      document.getElementById('prev-button').addEventListener('click', () => sessionAction('navigate', { index: snapshot.current_index - 1 }));
      document.getElementById('next-button').addEventListener('click', () => sessionAction('navigate', { index: snapshot.current_index + 1 }));
      document.getElementById('review-button').addEventListener('click', () => sessionAction('mark-review', { question_id: snapshot.question && snapshot.question.id }));
      submitButton.addEventListener('click', submitExam);

      document.addEventListener('fullscreenchange', () => {
        reportProctoring({ fullscreen: Boolean(document.fullscreenElement) });
      });
      document.addEventListener('visibilitychange', () => {
        reportProctoring({ hidden: document.hidden });
      });
    </script>
  </body>
</html>
"""
