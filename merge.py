#!/usr/bin/python3
#
# Copyright 2007 Google Inc. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""A tool for merging several transit feeds into one.

In a regional merge the feeds of several agencies covering the same period
are joined. Ids of every feed but the first are prefixed with a token naming
their feed, like "Fake_Agency2:stop1", so they can't collide.

In a service period merge two versions of the same feed are joined. The feed
starting first is the active feed and the other one the future feed. The
merged feed runs the active services up to the day before the future feed
starts and the future services after that. Trips listed by both feeds must
have the same stop times; they are kept once and run on a service joining
both periods.

Problems found while merging are written to an HTML report.
"""

import logging
import os
import sys
import webbrowser

import feedmerge
from feedmerge import util


def LoadWithoutErrors(path, feed_source_name, version):
    """Return a Dataset loaded from path; sys.exit for any error."""
    accumulator = feedmerge.ExceptionProblemAccumulator()
    loading_problem_handler = feedmerge.ProblemReporter(accumulator)
    try:
        dataset = feedmerge.Loader(
            path,
            problems=loading_problem_handler,
            feed_source_name=feed_source_name,
            version=version,
        ).Load()
    except feedmerge.ExceptionWithContext as e:
        print(
            (
                "\n\nFeeds to merge must load without any errors.\n"
                "While loading %s the following error was found:\n%s\n%s\n"
                % (path, e.FormatContext(), e.FormatProblem())
            ),
            file=sys.stderr,
        )
        sys.exit(1)
    return dataset


def main():
    """Run the merge driver program."""
    usage = """%prog [options] <input GTFS 1.zip> <input GTFS 2.zip> [...] <output GTFS.zip>

Merges the input feeds into a new GTFS file <output GTFS.zip>. A service
period merge takes exactly two input feeds, a regional merge any number.
"""

    parser = util.OptionParserLongError(
        usage=usage, version="%prog " + feedmerge.__version__
    )
    parser.add_option(
        "--mode",
        dest="mode",
        default=feedmerge.SERVICE_PERIOD,
        type="choice",
        choices=feedmerge.ALL_MODES,
        help="the kind of merge, one of %s" % ", ".join(feedmerge.ALL_MODES),
    )
    parser.add_option(
        "--source_name",
        dest="source_names",
        action="append",
        default=[],
        help="the name of the source publishing an input feed, used to "
        "scope its ids. Give it once per input feed, in order. The base "
        "name of each input is used by default.",
    )
    parser.add_option(
        "--html_output_path",
        dest="html_output_path",
        default="merge-results.html",
        help="write the html output to this file",
    )
    parser.add_option(
        "--no_browser",
        dest="no_browser",
        action="store_true",
        help="prevents the merge results from being opened in a browser",
    )
    parser.add_option(
        "--max_workers",
        dest="max_workers",
        type="int",
        default=None,
        help="the number of threads merging tables concurrently",
    )
    parser.add_option(
        "-v",
        "--verbose",
        dest="verbose",
        action="store_true",
        help="log the progress of the merge",
    )
    (options, args) = parser.parse_args()

    if len(args) < 3:
        parser.error("You did not provide all required command line arguments.")
    input_paths = [os.path.abspath(p) for p in args[:-1]]
    merged_feed_path = os.path.abspath(args[-1])
    if options.source_names and len(options.source_names) != len(input_paths):
        parser.error("Give one --source_name for each input feed.")

    if input_paths[0].find("IWantMyCrash") != -1:
        # See tests/test_merge.py
        raise Exception("For testing the merge crash handler.")

    if options.verbose:
        feedmerge.console.setLevel(logging.INFO)
        logging.getLogger("feedmerge").setLevel(logging.INFO)

    datasets = []
    for index, path in enumerate(input_paths):
        source_name = None
        if options.source_names:
            source_name = options.source_names[index]
        datasets.append(LoadWithoutErrors(path, source_name, index + 1))

    accumulator = feedmerge.HTMLProblemAccumulator()
    problem_reporter = feedmerge.MergeProblemReporter(accumulator)
    sink = feedmerge.ZipFeedSink(os.path.dirname(merged_feed_path))
    result = feedmerge.merge(
        datasets,
        options.mode,
        os.path.basename(merged_feed_path),
        sink=sink,
        problem_reporter=problem_reporter,
        max_workers=options.max_workers,
    )

    with open(options.html_output_path, "w") as output_file:
        accumulator.WriteOutput(output_file, result, input_paths, result.output)

    if not options.no_browser:
        webbrowser.open("file://%s" % os.path.abspath(options.html_output_path))

    if result.failed:
        print("\n".join(result.failure_reasons), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    util.RunWithCrashHandler(main)
