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

# Code shared between tests.


import csv
import os
import os.path
import re
import shutil
import subprocess
import sys
import tempfile
import traceback
import unittest
import zipfile
from io import BytesIO
from io import StringIO

import feedmerge


def check_call(cmd, expected_retcode=0, stdin_str="", **kwargs):
    """Convenience function that is in the docs for subprocess but not
    installed on my system. Raises an Exception if the return code is not
    expected_retcode. Returns a tuple of strings, (stdout, stderr)."""
    try:
        if "stdout" in kwargs or "stderr" in kwargs or "stdin" in kwargs:
            raise Exception("Don't pass stdout or stderr")

        # On Windows a custom 'env' must keep 'SystemRoot' because os.urandom()
        # requires this system variable.
        if "SystemRoot" in os.environ:
            if "env" in kwargs:
                kwargs["env"].setdefault(
                    "SystemRoot", os.environ["SystemRoot"]
                )

        p = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.PIPE,
            **kwargs
        )
        (out, err) = p.communicate(stdin_str.encode("utf-8"))
        retcode = p.returncode
    except Exception as e:
        raise Exception("When running %s: %s" % (cmd, e))
    if retcode < 0:
        raise Exception(
            "Child '%s' was terminated by signal %d. Output:\n%s\n%s\n"
            % (cmd, -retcode, out, err)
        )
    elif retcode != expected_retcode:
        raise Exception(
            "Child '%s' returned %d. Output:\n%s\n%s\n"
            % (cmd, retcode, out, err)
        )
    return (out.decode("utf-8"), err.decode("utf-8"))


class TestCase(unittest.TestCase):
    """Base of every TestCase class in this project.

    This adds some methods that perhaps should be in unittest.TestCase.
    """

    def assertMatchesRegex(self, regex, string):
        """Assert that regex is found in string."""
        if not re.search(regex, string):
            self.fail("string %r did not match regex %r" % (string, regex))


class GetPathTestCase(TestCase):
    """TestCase with method to get paths to files in the distribution."""

    def setUp(self):
        super(GetPathTestCase, self).setUp()
        self._origcwd = os.getcwd()

    def GetPath(self, *path):
        """Return absolute path of path. path is relative main source directory."""
        here = os.path.dirname(__file__)  # Relative to _origcwd
        return os.path.join(self._origcwd, here, "..", *path)


class TempDirTestCaseBase(GetPathTestCase):
    """Make a temporary directory the current directory before running the test
    and remove it after the test.
    """

    def setUp(self):
        GetPathTestCase.setUp(self)
        self.tempdirpath = tempfile.mkdtemp()
        os.chdir(self.tempdirpath)

    def tearDown(self):
        os.chdir(self._origcwd)
        shutil.rmtree(self.tempdirpath)
        GetPathTestCase.tearDown(self)

    def CheckCallWithPath(self, cmd, expected_retcode=0, stdin_str=""):
        """Run python script cmd[0] with args cmd[1:], making sure 'import
        feedmerge' will use the package in this source tree. Raises an Exception
        if the return code is not expected_retcode. Returns a tuple of strings,
        (stdout, stderr)."""
        fm_path = feedmerge.__file__
        # Path of the directory containing the feedmerge package.
        feedmerge_parent = os.path.dirname(os.path.dirname(os.path.abspath(fm_path)))
        feedmerge_parent = feedmerge_parent.replace("\\", "/").rstrip("/")
        script_path = cmd[0].replace("\\", "/")
        script_args = cmd[1:]

        # Propogate sys.path of this process to the subprocess.
        env = {"PYTHONPATH": os.pathsep.join(sys.path)}

        # Instead of directly running the script make sure that the feedmerge
        # package in this source directory is at the front of sys.path. Then
        # adjust sys.argv so it looks like the script was run directly. This lets
        # OptionParser use the correct value for %proj.
        cmd = [
            sys.executable,
            "-c",
            "import sys; "
            "sys.path.insert(0,'%s'); "
            "sys.argv = ['%s'] + sys.argv[1:]; "
            "__name__ = '__main__'; "
            "exec(open('%s').read())"
            % (feedmerge_parent, script_path, script_path),
        ] + script_args
        return check_call(
            cmd,
            expected_retcode=expected_retcode,
            shell=False,
            env=env,
            stdin_str=stdin_str,
        )

    def ConvertZipToDict(self, zip):
        """Converts a zip file into a dictionary.

        Arguments:
            zip: The zipfile whose contents are to be converted to a dictionary.

        Returns:
            A dictionary mapping filenames to file contents."""

        zip_dict = {}
        for archive_name in zip.namelist():
            zip_dict[archive_name] = zip.read(archive_name)
        zip.close()
        return zip_dict


class RecordingProblemAccumulator(feedmerge.ProblemAccumulatorInterface):
    """Save all problems for later inspection.

    Args:
      test_case: a unittest.TestCase object on which to report problems
      ignore_types: sequence of string type names that will be ignored by the
      ProblemAccumulator"""

    def __init__(self, test_case, ignore_types=None):
        self.exceptions = []
        self._test_case = test_case
        self._ignore_types = ignore_types or set()

    def _Report(self, e):
        # Ensure that these don't crash
        e.FormatProblem()
        e.FormatContext()
        if e.__class__.__name__ in self._ignore_types:
            return
        # Keep the 7 nearest stack frames. This should be enough to identify
        # the code path that created the exception while trimming off most of the
        # large test framework's stack.
        traceback_list = traceback.format_list(
            traceback.extract_stack()[-7:-1]
        )
        self.exceptions.append((e, "".join(traceback_list)))

    def PopException(self, type_name):
        """Return the first exception, which must be a type_name."""
        self._test_case.assertTrue(
            self.exceptions, "No %s problem was reported" % type_name
        )
        e = self.exceptions.pop(0)
        e_name = e[0].__class__.__name__
        self._test_case.assertEqual(
            e_name,
            type_name,
            "%s != %s\n%s" % (e_name, type_name, self.FormatException(*e)),
        )
        return e[0]

    def PopAll(self, type_name):
        """Remove and return every problem of the given type, in order."""
        popped = [e for e, _ in self.exceptions if e.__class__.__name__ == type_name]
        self.exceptions = [
            (e, tb)
            for e, tb in self.exceptions
            if e.__class__.__name__ != type_name
        ]
        return popped

    def GetTypeNames(self):
        return [e.__class__.__name__ for e, _ in self.exceptions]

    def FormatException(self, exce, tb):
        return "%s\nwith gtfs file context %s\nand traceback\n%s" % (
            exce.FormatProblem(),
            exce.FormatContext(),
            tb,
        )

    def AssertNoMoreExceptions(self):
        """Check that no unexpected problems were reported.

        Every test that uses a RecordingProblemAccumulator should end with a
        call to this method.
        """
        exceptions_as_text = []
        for e, tb in self.exceptions:
            exceptions_as_text.append(self.FormatException(e, tb))
        self.exceptions = []
        self._test_case.assertFalse(
            exceptions_as_text, "\n".join(exceptions_as_text)
        )

    def PopColumnSpecificException(
        self, type_name, column_name, file_name=None
    ):
        """Pops and validates column-specific exceptions from the accumulator.

        Arguments:
            type_name: the type of the exception as string, e.g. 'InvalidValue'
            column_name: the name of the field (column) which caused the exception
            file_name: optional, the name of the file containing the bad field

        Returns:
            the exception object
        """
        e = self.PopException(type_name)
        self._test_case.assertEqual(column_name, e.column_name)
        if file_name:
            self._test_case.assertEqual(file_name, e.file_name)
        return e


class MemoryZipTestCase(TestCase):
    """Base for TestCase classes which read from an in-memory zip file.

    A test that loads data from this zip file exercises almost all the code
    used when merge.py loads a feed, but does not touch disk."""

    def setUp(self):
        self.accumulator = RecordingProblemAccumulator(self)
        self.problems = feedmerge.ProblemReporter(self.accumulator)
        self.zip_contents = {}
        self.SetArchiveContents(
            "agency.txt",
            "agency_id,agency_name,agency_url,agency_timezone\n"
            "DTA,Demo Agency,http://google.com,America/Los_Angeles\n",
        )
        self.SetArchiveContents(
            "calendar.txt",
            "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,"
            "start_date,end_date\n"
            "FULLW,1,1,1,1,1,1,1,20070101,20101231\n"
            "WE,0,0,0,0,0,1,1,20070101,20101231\n",
        )
        self.SetArchiveContents(
            "calendar_dates.txt",
            "service_id,date,exception_type\n" "FULLW,20070101,1\n",
        )
        self.SetArchiveContents(
            "routes.txt",
            "route_id,agency_id,route_short_name,route_long_name,route_type\n"
            "AB,DTA,,Airport Bullfrog,3\n",
        )
        self.SetArchiveContents(
            "trips.txt", "route_id,service_id,trip_id\n" "AB,FULLW,AB1\n"
        )
        self.SetArchiveContents(
            "stops.txt",
            "stop_id,stop_name,stop_lat,stop_lon\n"
            "BEATTY_AIRPORT,Airport,36.868446,-116.784582\n"
            "BULLFROG,Bullfrog,36.88108,-116.81797\n"
            "STAGECOACH,Stagecoach Hotel,36.915682,-116.751677\n",
        )
        self.SetArchiveContents(
            "stop_times.txt",
            "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
            "AB1,10:00:00,10:00:00,BEATTY_AIRPORT,1\n"
            "AB1,10:20:00,10:20:00,BULLFROG,2\n"
            "AB1,10:25:00,10:25:00,STAGECOACH,3\n",
        )

    def MakeLoaderAndLoad(self, problems=None, **kwargs):
        """Returns a Dataset loaded with the contents of the file dict."""
        if problems is None:
            problems = self.problems
        self.CreateZip()
        self.loader = feedmerge.Loader(problems=problems, zip=self.zip, **kwargs)
        return self.loader.Load()

    def SetArchiveContents(self, arcname, contents):
        """Set the contents of file arcname in the file dict.

        All calls to this function, if any, should be made before calling
        MakeLoaderAndLoad."""
        self.zip_contents[arcname] = contents

    def RemoveArchive(self, arcname):
        """Remove file arcname from the file dict."""
        del self.zip_contents[arcname]

    def CreateZip(self):
        """Create an in-memory GTFS zipfile from the contents of the file dict."""
        self.zipfile = BytesIO()
        self.zip = zipfile.ZipFile(self.zipfile, "a")
        for (arcname, contents) in list(self.zip_contents.items()):
            self.zip.writestr(arcname, contents)


# Builders of small in-memory feeds. A feed is described by a map from table
# name to CSV text, like the contents of the files of a zipped feed.

AGENCY = (
    "agency_id,agency_name,agency_url,agency_timezone\n"
    "FA,Fake Agency,http://example.com,America/Los_Angeles\n"
)

STOPS = (
    "stop_id,stop_name,stop_lat,stop_lon\n"
    "s1,First Street,37.7749,-122.4194\n"
    "s2,Second Street,37.7755,-122.4180\n"
    "s3,Third Street,37.7761,-122.4166\n"
)

ROUTES = (
    "route_id,agency_id,route_short_name,route_long_name,route_type\n"
    "r1,FA,1,Downtown,3\n"
)

_DAYS = "monday,tuesday,wednesday,thursday,friday,saturday,sunday"


def CalendarCsv(*services):
    """Return calendar.txt for (service_id, start_date, end_date) tuples.

    Every service runs on all days of the week."""
    lines = ["service_id,%s,start_date,end_date" % _DAYS]
    for service_id, start_date, end_date in services:
        lines.append("%s,1,1,1,1,1,1,1,%s,%s" % (service_id, start_date, end_date))
    return "\n".join(lines) + "\n"


def CalendarDatesCsv(*dates):
    """Return calendar_dates.txt for (service_id, date, exception_type)."""
    lines = ["service_id,date,exception_type"]
    lines.extend("%s,%s,%s" % d for d in dates)
    return "\n".join(lines) + "\n"


def TripsCsv(*trips):
    """Return trips.txt for (trip_id, service_id) tuples on route r1."""
    lines = ["route_id,service_id,trip_id"]
    lines.extend("r1,%s,%s" % (service_id, trip_id) for trip_id, service_id in trips)
    return "\n".join(lines) + "\n"


def StopTimesCsv(*trips):
    """Return stop_times.txt for (trip_id, start_hour) tuples.

    Each trip calls at s1, s2 and s3, ten minutes apart."""
    lines = ["trip_id,arrival_time,departure_time,stop_id,stop_sequence"]
    for trip_id, hour in trips:
        for sequence, stop_id in enumerate(["s1", "s2", "s3"]):
            time = "%02d:%02d:00" % (hour, sequence * 10)
            lines.append(
                "%s,%s,%s,%s,%d" % (trip_id, time, time, stop_id, sequence + 1)
            )
    return "\n".join(lines) + "\n"


def MakeFeedTables(services, trips, calendar_dates=None, **tables):
    """Return the CSV tables of a small feed.

    Args:
      services: (service_id, start_date, end_date) tuples for calendar.txt.
      trips: (trip_id, service_id, start_hour) tuples.
      calendar_dates: optional (service_id, date, exception_type) tuples.
      tables: other tables, or replacements of the default ones, as CSV text.
    """
    feed_tables = {
        "agency": AGENCY,
        "stops": STOPS,
        "routes": ROUTES,
        "trips": TripsCsv(*[(t, s) for t, s, _ in trips]),
        "stop_times": StopTimesCsv(*[(t, h) for t, _, h in trips]),
    }
    if services:
        feed_tables["calendar"] = CalendarCsv(*services)
    if calendar_dates:
        feed_tables["calendar_dates"] = CalendarDatesCsv(*calendar_dates)
    feed_tables.update(tables)
    return feed_tables


def DatasetFromCsv(feed_tables, feed_source_name="Fake Agency", version=1, **kwargs):
    """Return a Dataset built from a map of table name to CSV text."""
    table_rows = {}
    table_columns = {}
    for table_name, text in list(feed_tables.items()):
        reader = csv.DictReader(StringIO(text))
        table_rows[table_name] = [dict(row) for row in reader]
        table_columns[table_name] = list(reader.fieldnames or [])
    return feedmerge.Dataset(
        table_rows,
        table_columns=table_columns,
        name="%s v%d" % (feed_source_name, version),
        feed_source_name=feed_source_name,
        version=version,
        **kwargs
    )


def MakeFeed(services, trips, feed_source_name="Fake Agency", version=1, **kwargs):
    """Return a Dataset of a small feed, see MakeFeedTables()."""
    calendar_dates = kwargs.pop("calendar_dates", None)
    has_blocking_errors = kwargs.pop("has_blocking_errors", False)
    return DatasetFromCsv(
        MakeFeedTables(services, trips, calendar_dates, **kwargs),
        feed_source_name=feed_source_name,
        version=version,
        has_blocking_errors=has_blocking_errors,
    )


def WriteFeedZip(path, feed_tables):
    """Write a map of table name to CSV text as a zipped feed at path."""
    with zipfile.ZipFile(path, "w") as archive:
        for table_name, text in list(feed_tables.items()):
            archive.writestr(table_name + ".txt", text)


def GetRowsById(dataset, table_name, column):
    """Return a map from the value of column to the row of a table."""
    return dict((row[column], row) for row in dataset.GetRows(table_name))
