#!/usr/bin/python3

# Copyright (C) 2007 Google Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""An HTML report of a merge."""

import html
import time

from .errors import TYPE_ERROR, TYPE_WARNING
from .problems import ProblemAccumulatorInterface
from .version import __version__


class HTMLProblemAccumulator(ProblemAccumulatorInterface):
    """A problem accumulator which generates HTML output."""

    def __init__(self):
        """Initialise."""
        self._file_warnings = {}  # a map from file names to their warnings
        self._file_errors = {}
        self._notices = []
        self._warning_count = 0
        self._error_count = 0
        self._notice_count = 0

    def _Report(self, merge_problem):
        # Notices are handled special
        if merge_problem.IsNotice():
            self._notice_count += 1
            self._notices.append(merge_problem)
            return

        if merge_problem.IsWarning():
            file_problems = self._file_warnings
            self._warning_count += 1
        else:
            file_problems = self._file_errors
            self._error_count += 1

        problem_html = "<li>%s</li>" % (
            html.escape(merge_problem.FormatProblem()).replace("\n", "<br>")
        )
        file_name = getattr(merge_problem, "file_name", None) or "General"
        file_problems.setdefault(file_name, []).append(problem_html)

    def _GenerateStatsTable(self, result):
        """Generate an HTML table of merge statistics.

        Args:
          result: The MergeResult.

        Returns:
          The generated HTML as a string.
        """
        rows = []
        header_cells = ['<th class="header"/><th class="header">Merged</th>']
        for name in result.input_names:
            header_cells.append(
                '<th class="header">Copied from %s</th>' % html.escape(name)
            )
        header_cells.append('<th class="header">Total</th>')
        rows.append("<tr>%s</tr>" % "".join(header_cells))
        for dataset_name, file_name, merged, copied in result.merge_stats:
            cells = ['<th class="header">%s</th>' % dataset_name]
            cells.append('<td class="header">%d</td>' % merged)
            cells.extend('<td class="header">%d</td>' % n for n in copied)
            cells.append(
                '<td class="header">%d</td>'
                % result.row_counts.get(file_name[: -len(".txt")], 0)
            )
            rows.append("<tr>%s</tr>" % "".join(cells))
        return "<table>%s</table>" % "\n".join(rows)

    def _GenerateSection(self, problem_type):
        """Generate a listing of the given type of problems.

        Args:
          problem_type: The type of problem. This is one of the problem type
                        constants from feedmerge.errors.

        Returns:
          The generated HTML as a string.
        """
        if problem_type == TYPE_WARNING:
            file_problems = self._file_warnings
            heading = "Warnings"
        else:
            file_problems = self._file_errors
            heading = "Errors"

        if not file_problems:
            return ""

        prefix = '<h2 class="issueHeader">%s:</h2>' % heading
        file_sections = []
        for file_name, problems in sorted(file_problems.items()):
            file_sections.append(
                "<h3>%s</h3><ol>%s</ol>" % (file_name, "\n".join(problems))
            )
        body = "\n".join(file_sections)
        return prefix + body

    def _GenerateSummary(self, result):
        """Generate a summary of the warnings and errors.

        Returns:
          The generated HTML as a string.
        """
        items = []
        if result.strategy_used:
            items.append("strategy: %s" % result.strategy_used)
        if self._notices:
            items.append("notices: %d" % self._notice_count)
        if self._file_errors:
            items.append("errors: %d" % self._error_count)
        if self._file_warnings:
            items.append("warnings: %d" % self._warning_count)

        summary = "<br>".join(items)
        if result.failed:
            return '<p><span class="fail">merge failed</span><br>%s</p>' % summary
        if self._file_errors or self._file_warnings:
            return '<p><span class="fail">%s</span></p>' % summary
        if summary:
            summary = "<br>" + summary
        return '<p><span class="pass">feeds merged successfully</span>%s</p>' % summary

    def _GenerateNotices(self):
        """Generate a summary of any notices.

        Returns:
          The generated HTML as a string.
        """
        items = []
        for e in self._notices:
            items.append(
                '<li class="notice">%s</li>'
                % html.escape(e.FormatProblem()).replace("\n", "<br>")
            )
        if items:
            return "<h2>Notices:</h2>\n<ul>%s</ul>\n" % "\n".join(items)
        else:
            return ""

    def WriteOutput(self, output_file, result, input_paths, merged_feed_path):
        """Write the HTML output to a file.

        Args:
          output_file: The file object that the HTML output will be written to.
          result: The MergeResult.
          input_paths: The paths of the input feeds, as strings.
          merged_feed_path: The path to the merged feed file as a string. This
                            may be None if no merged feed was written.
        """
        if merged_feed_path is None:
            html_merged_feed_path = ""
        else:
            html_merged_feed_path = (
                "<p>Merged feed created: <code>%s</code></p>"
                % html.escape(merged_feed_path)
            )
        html_input_paths = "\n".join(
            "<p>Input feed: <code>%s</code></p>" % html.escape(p)
            for p in input_paths
        )

        html_header = (
            """<html>
<head>
<meta http-equiv="Content-Type" content="text/html; charset=UTF-8"/>
<title>Feed Merger Results</title>
<style>
  body {font-family: Georgia, serif; background-color: white}
  td,th {background-color: khaki; padding: 2px; font-family:monospace}
  table {border-spacing: 5px 0px; margin-top: 3px}
  h3.issueHeader {padding-left: 1em}
  .notice {background-color: yellow}
  span.pass {background-color: lightgreen}
  span.fail {background-color: yellow}
  .pass, .fail {font-size: 16pt; padding: 3px}
  ol {padding-left: 40pt}
  .header {background-color: white; font-family: Georgia, serif; padding: 0px}
  th.header {text-align: right; font-weight: normal; color: gray}
  .footer {font-size: 10pt}
</style>
</head>
<body>
<h1>Feed merger results</h1>
<p>Mode: <code>%s</code></p>
%s
%s"""
            % (html.escape(str(result.mode)), html_input_paths, html_merged_feed_path)
        )

        html_stats = self._GenerateStatsTable(result)
        html_summary = self._GenerateSummary(result)
        html_notices = self._GenerateNotices()
        html_errors = self._GenerateSection(TYPE_ERROR)
        html_warnings = self._GenerateSection(TYPE_WARNING)

        html_footer = """
<div class="footer">
Generated using feedmerge version %s on %s.
</div>
</body>
</html>""" % (
            __version__,
            time.strftime("%B %d, %Y at %I:%M %p %Z"),
        )

        output_file.write(html_header)
        output_file.write(html_stats)
        output_file.write(html_summary)
        output_file.write(html_notices)
        output_file.write(html_errors)
        output_file.write(html_warnings)
        output_file.write(html_footer)
