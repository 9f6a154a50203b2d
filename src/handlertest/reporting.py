"""
Failure sinks and the HTML run report.

A reporter is any object with error(message) (non-fatal, the run goes on)
and fatal(message) (stop now). The Tester only ever calls error() while running.
"""

import logging
from typing import Any, Dict, List, Sequence, Union

from jinja2 import Template

from .errors import ScenarioFailed

logger = logging.getLogger(__name__)


class FailureCollector:
    """Default reporter: keeps every message for a later raise_for_failures()."""

    def __init__(self):
        self.failures: List[str] = []

    def error(self, message: str):
        logger.warning("%s", message)
        self.failures.append(str(message))

    def fatal(self, message: str):
        self.error(message)
        raise ScenarioFailed(self.failures)

    def raise_for_failures(self):
        if self.failures:
            raise ScenarioFailed(self.failures)

    def __len__(self):
        return len(self.failures)


HTML_TMPL = r"""
<!doctype html>
<html>
<head>
  <meta charset="utf-8"/>
  <title>Handler Test Report</title>
  <style>
    body{font-family:Arial,Helvetica,sans-serif;margin:16px;color:#222}
    .summary{margin-bottom:20px;padding:12px;background:#f2f8ff;border:1px solid #cfe0ff}
    .scenario{border:1px solid #ddd;margin-bottom:12px;border-radius:6px;overflow:hidden}
    .sc-head{background:#eef6ff;padding:10px;cursor:pointer;display:flex;justify-content:space-between}
    .sc-body{display:none;padding:10px;background:#fff}
    .call{padding:8px;border-top:1px solid #f0f0f0}
    .ok{color:green;font-weight:600}
    .fail{color:red;font-weight:700}
    pre{background:#f7f7f7;padding:8px;border-radius:4px;overflow:auto}
    .meta{font-size:12px;color:#666}
    .badge{display:inline-block;padding:2px 8px;border-radius:12px;background:#ddd;margin-left:8px}
  </style>
</head>
<body>
  <h1>Handler Test Report</h1>
  <div class="summary">
    <div>Total scenarios: {{ reports|length }}</div>
    <div>Scenarios: Passed {{ passed }}  Failed {{ failed }}</div>
  </div>

  {% for s in reports %}
  <div class="scenario">
    <div class="sc-head" onclick="toggle('sc-{{ loop.index0 }}')">
      <div><strong>{{ s.name }}</strong></div>
      <div>
        <span class="badge">calls: {{ s.calls|length }}</span>
        {% if s.failures %}<span class="fail">FAILED</span>{% else %}<span class="ok">PASSED</span>{% endif %}
      </div>
    </div>
    <div id="sc-{{ loop.index0 }}" class="sc-body">
      {% for call in s.calls %}
      <div class="call">
        <div><strong>[{{ call.index }}] {{ call.name }}</strong>
           {% if call.duration_ms is not none %}<span class="meta"> - {{ call.duration_ms }} ms</span>{% endif %}
           {% if call.failures %}<span class="fail"> FAIL</span>{% else %}<span class="ok"> OK</span>{% endif %}
        </div>
        {% if call.request %}
        <div class="meta">Request: {{ call.request.method }} {{ call.request.url }}</div>
        {% if call.request.headers %}
        <div class="meta">Headers: <pre>{{ call.request.headers|tojson(indent=2) }}</pre></div>
        {% endif %}
        {% if call.request.body %}
        <div class="meta">Body: <pre>{{ call.request.body }}</pre></div>
        {% endif %}
        {% endif %}
        {% if call.response %}
        <div class="meta">Response: status {{ call.response.status_code }}</div>
        {% if call.response.json is not none %}
        <div>Response JSON: <pre>{{ call.response.json|tojson(indent=2) }}</pre></div>
        {% else %}
        <div>Response Snippet: <pre>{{ call.response.text_snippet }}</pre></div>
        {% endif %}
        {% endif %}
        {% for failure in call.failures %}
        <div style="color:red"><strong>Failure:</strong> {{ failure }}</div>
        {% endfor %}
      </div>
      {% endfor %}
    </div>
  </div>
  {% endfor %}

  <script>
    function toggle(id){
      var el = document.getElementById(id);
      if(!el) return;
      el.style.display = (el.style.display === 'none' || el.style.display === '') ? 'block' : 'none';
    }
  </script>
</body>
</html>
"""


def generate_html_report(reports: Union[Dict[str, Any], Sequence[Dict[str, Any]]], out_path: str):
    """
    reports: one or more Tester.report() structures:
      { "name":..., "failures":[...], "calls":[ {index,name,request,response,failures,duration_ms} ] }
    out_path: path to write HTML file
    """
    if isinstance(reports, dict):
        reports = [reports]
    failed = sum(1 for r in reports if r.get("failures"))
    passed = len(reports) - failed

    tmpl = Template(HTML_TMPL, autoescape=True)
    html = tmpl.render(reports=reports, passed=passed, failed=failed)
    with open(out_path, "w", encoding="utf-8") as fh:
        fh.write(html)
    logger.info("wrote HTML report to %s", out_path)
