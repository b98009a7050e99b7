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


import logging
import threading
from functools import reduce

from .errors import TYPE_ERROR, TYPE_WARNING, TYPE_NOTICE, ALL_TYPES, Error


class ProblemReporter(object):
    """Base class for problem reporters. Tracks the current context and creates
     an exception object for each problem. Exception objects are sent to a
     Problem Accumulator, which is responsible for handling them."""

    def __init__(self, accumulator=None):
        self.ClearContext()
        self._error_count = 0
        if accumulator is None:
            self.accumulator = SimpleProblemAccumulator()
        else:
            self.accumulator = accumulator

    def SetAccumulator(self, accumulator):
        self.accumulator = accumulator

    def GetAccumulator(self):
        return self.accumulator

    def ClearContext(self):
        """Clear any previous context."""
        self._context = None

    def SetFileContext(self, file_name, row_num, row, headers):
        """Save the current context to be output with any errors.

    Args:
      file_name: string
      row_num: int
      row: list of strings
      headers: list of column headers, its order corresponding to row's
    """
        self._context = (file_name, row_num, row, headers)

    def GetFileContext(self):
        return self._context

    def GetErrorCount(self):
        """Return the number of errors reported so far."""
        return self._error_count

    def AddToAccumulator(self, e):
        """Report an exception to the Problem Accumulator"""
        if e.IsError():
            self._error_count += 1
        self.accumulator._Report(e)

    def FeedNotFound(self, feed_name, context=None, type=TYPE_ERROR):
        e = FeedNotFound(
            feed_name=feed_name,
            context=context,
            context2=self._context,
            type=type,
        )
        self.AddToAccumulator(e)

    def UnknownFormat(self, feed_name, context=None, type=TYPE_ERROR):
        e = UnknownFormat(
            feed_name=feed_name,
            context=context,
            context2=self._context,
            type=type,
        )
        self.AddToAccumulator(e)

    def FileFormat(self, problem, context=None, type=TYPE_ERROR):
        e = FileFormat(
            problem=problem, context=context, context2=self._context, type=type
        )
        self.AddToAccumulator(e)

    def MissingFile(self, file_name, context=None, type=TYPE_ERROR):
        e = MissingFile(
            file_name=file_name,
            context=context,
            context2=self._context,
            type=type,
        )
        self.AddToAccumulator(e)

    def UnknownFile(self, file_name, context=None, type=TYPE_WARNING):
        e = UnknownFile(
            file_name=file_name,
            context=context,
            context2=self._context,
            type=type,
        )
        self.AddToAccumulator(e)

    def EmptyFile(self, file_name, context=None, type=TYPE_ERROR):
        e = EmptyFile(
            file_name=file_name,
            context=context,
            context2=self._context,
            type=type,
        )
        self.AddToAccumulator(e)

    def MissingColumn(
        self, file_name, column_name, context=None, type=TYPE_ERROR
    ):
        e = MissingColumn(
            file_name=file_name,
            column_name=column_name,
            context=context,
            context2=self._context,
            type=type,
        )
        self.AddToAccumulator(e)

    def UnrecognizedColumn(
        self, file_name, column_name, context=None, type=TYPE_NOTICE
    ):
        e = UnrecognizedColumn(
            file_name=file_name,
            column_name=column_name,
            context=context,
            context2=self._context,
            type=type,
        )
        self.AddToAccumulator(e)

    def CsvSyntax(self, description=None, context=None, type=TYPE_ERROR):
        e = CsvSyntax(
            description=description,
            context=context,
            context2=self._context,
            type=type,
        )
        self.AddToAccumulator(e)

    def DuplicateColumn(
        self, file_name, header, count, type=TYPE_ERROR, context=None
    ):
        e = DuplicateColumn(
            file_name=file_name,
            header=header,
            count=count,
            type=type,
            context=context,
            context2=self._context,
        )
        self.AddToAccumulator(e)

    def DuplicateID(self, column_names, values, context=None, type=TYPE_ERROR):
        if isinstance(column_names, (tuple, list)):
            column_names = "(" + ", ".join(column_names) + ")"
        if isinstance(values, tuple):
            values = "(" + ", ".join(values) + ")"
        e = DuplicateID(
            column_name=column_names,
            value=values,
            context=context,
            context2=self._context,
            type=type,
        )
        self.AddToAccumulator(e)

    def WrongNumberOfFields(
        self, file_name, row_num, expected, found, type=TYPE_WARNING
    ):
        self.AddToAccumulator(
            WrongNumberOfFields(
                problem_type=type,
                file_name=file_name,
                row_num=row_num,
                expected=expected,
                found=found,
            )
        )


class MergeProblemReporter(ProblemReporter):
    """The problem reporter used while merging feeds."""

    def InvalidMergeInput(self, reason):
        self.AddToAccumulator(
            InvalidMergeInput(problem_type=TYPE_ERROR, reason=reason)
        )

    def BlockingErrors(self, feed_name):
        self.AddToAccumulator(
            BlockingErrors(problem_type=TYPE_ERROR, feed_name=feed_name)
        )

    def MissingTable(self, feed_name, file_name):
        self.AddToAccumulator(
            MissingTable(
                problem_type=TYPE_ERROR,
                feed_name=feed_name,
                file_name=file_name,
            )
        )

    def AmbiguousFeedOrder(self, feed_name_a, feed_name_b, start_date):
        self.AddToAccumulator(
            AmbiguousFeedOrder(
                problem_type=TYPE_ERROR,
                feed_name_a=feed_name_a,
                feed_name_b=feed_name_b,
                start_date=start_date,
            )
        )

    def TripSignatureMismatch(self, trip_id, active_feed, future_feed):
        self.AddToAccumulator(
            TripSignatureMismatch(
                problem_type=TYPE_ERROR,
                file_name="stop_times.txt",
                trip_id=trip_id,
                active_feed=active_feed,
                future_feed=future_feed,
            )
        )

    def AmbiguousServicePeriod(self, service_id, feed_name, reason):
        self.AddToAccumulator(
            AmbiguousServicePeriod(
                problem_type=TYPE_ERROR,
                file_name="calendar.txt",
                service_id=service_id,
                feed_name=feed_name,
                reason=reason,
            )
        )

    def SameIdButNotMerged(
        self, file_name, column_name, entity_id, feed_name, new_id
    ):
        self.AddToAccumulator(
            SameIdButNotMerged(
                problem_type=TYPE_WARNING,
                file_name=file_name,
                column_name=column_name,
                id=entity_id,
                feed_name=feed_name,
                new_id=new_id,
            )
        )

    def AgencyIdGenerated(self, feed_name, agency_id):
        self.AddToAccumulator(
            AgencyIdGenerated(
                problem_type=TYPE_NOTICE,
                file_name="agency.txt",
                feed_name=feed_name,
                agency_id=agency_id,
            )
        )

    def ServicePeriodTruncated(self, service_id, end_date, new_end_date):
        self.AddToAccumulator(
            ServicePeriodTruncated(
                problem_type=TYPE_NOTICE,
                file_name="calendar.txt",
                service_id=service_id,
                end_date=end_date,
                new_end_date=new_end_date,
            )
        )

    def CalendarDatesDropped(self, service_id, count, cutoff):
        self.AddToAccumulator(
            CalendarDatesDropped(
                problem_type=TYPE_WARNING,
                file_name="calendar_dates.txt",
                service_id=service_id,
                count=count,
                cutoff=cutoff,
            )
        )

    def ServicePeriodDropped(self, service_id, feed_name, reason):
        self.AddToAccumulator(
            ServicePeriodDropped(
                problem_type=TYPE_WARNING,
                file_name="calendar.txt",
                service_id=service_id,
                feed_name=feed_name,
                reason=reason,
            )
        )

    def ServiceUnused(self, service_id, type=TYPE_WARNING):
        self.AddToAccumulator(
            ServiceUnused(
                problem_type=type,
                file_name="calendar.txt",
                service_id=service_id,
            )
        )

    def ReferentialIntegrity(
        self, file_name, column_name, value, target, type=TYPE_ERROR
    ):
        self.AddToAccumulator(
            ReferentialIntegrity(
                problem_type=type,
                file_name=file_name,
                column_name=column_name,
                value=value,
                target=target,
            )
        )


class ProblemAccumulatorInterface(object):
    """The base class for Problem Accumulators, which defines their interface."""

    def _Report(self, e):
        raise NotImplementedError(
            "Please use a concrete Problem Accumulator that "
            "implements error and warning handling."
        )


class SimpleProblemAccumulator(ProblemAccumulatorInterface):
    """This is a basic problem accumulator that just prints to console."""

    def _Report(self, e):
        context = e.FormatContext()
        if context:
            print(context)
        print(self._LineWrap(e.FormatProblem(), 78))

    @staticmethod
    def _LineWrap(text, width):
        """
    A word-wrap function that preserves existing line breaks
    and most spaces in the text. Expects that existing line
    breaks are posix newlines (\n).

    Taken from:
    http://aspn.activestate.com/ASPN/Cookbook/Python/Recipe/148061
    """
        return reduce(
            lambda line, word, width=width: "%s%s%s"
            % (
                line,
                " \n"[
                    (
                        len(line)
                        - line.rfind("\n")
                        - 1
                        + len(word.split("\n", 1)[0])
                        >= width
                    )
                ],
                word,
            ),
            text.split(" "),
        )


class ExceptionProblemAccumulator(ProblemAccumulatorInterface):
    """A problem accumulator that handles errors and optionally warnings by
     raising exceptions."""

    def __init__(self, raise_warnings=False):
        """Initialise.

    Args:
      raise_warnings: If this is True then warnings are also raised as
                      exceptions.
                      If it is false, warnings are printed to the console using
                      SimpleProblemAccumulator.
    """
        self.raise_warnings = raise_warnings
        self.accumulator = SimpleProblemAccumulator()

    def _Report(self, e):
        if self.raise_warnings or e.IsError():
            raise e
        else:
            self.accumulator._Report(e)


class MergeProblemAccumulator(ProblemAccumulatorInterface):
    """Keeps every problem reported during one merge and raises fatal ones.

    Problems are also handed to an optional downstream accumulator, such as an
    HTMLProblemAccumulator, so they can be displayed. A problem is fatal when
    its class sets FATAL; raising it aborts the merge at once. Other errors are
    only kept, and the merge fails once all of them are known.

    Tables are merged on several threads so the problem list is guarded by a
    lock.
    """

    def __init__(self, accumulator=None):
        self.problems = []
        self._accumulator = accumulator
        self._lock = threading.Lock()

    def _Report(self, e):
        with self._lock:
            self.problems.append(e)
            if self._accumulator is not None:
                self._accumulator._Report(e)
        if e.IsError() and e.FATAL:
            raise e

    def GetErrors(self):
        return [e for e in self.problems if e.IsError()]

    def GetWarnings(self):
        return [e for e in self.problems if e.IsWarning()]

    def HasErrors(self):
        return bool(self.GetErrors())


class ExceptionWithContext(Exception):
    # Fatal problems stop a merge as soon as they are reported.
    FATAL = False

    def __init__(self, context=None, context2=None, **kwargs):
        """Initialize an exception object, saving all keyword arguments in self.
    context and context2, if present, must be a tuple of (file_name, row_num,
    row, headers). context2 comes from ProblemReporter.SetFileContext. context
    was passed in with the keyword arguments. context2 is ignored if context
    is present."""
        Exception.__init__(self)

        if context:
            self.__dict__.update(self.ContextTupleToDict(context))
        elif context2:
            self.__dict__.update(self.ContextTupleToDict(context2))
        self.__dict__.update(kwargs)

        if ("type" in kwargs) and (kwargs["type"] in ALL_TYPES):
            self._type = kwargs["type"]
        else:
            self._type = TYPE_ERROR

    def GetType(self):
        return self._type

    def IsError(self):
        return self._type == TYPE_ERROR

    def IsWarning(self):
        return self._type == TYPE_WARNING

    def IsNotice(self):
        return self._type == TYPE_NOTICE

    CONTEXT_PARTS = ["file_name", "row_num", "row", "headers"]

    @staticmethod
    def ContextTupleToDict(context):
        """Convert a tuple representing a context into a dict of (key, value) pairs
    """
        d = {}
        if not context:
            return d
        for k, v in zip(ExceptionWithContext.CONTEXT_PARTS, context):
            if v != "" and v is not None:  # Don't ignore int(0), a valid row_num
                d[k] = v
        return d

    def __str__(self):
        return self.FormatProblem()

    def GetDictToFormat(self):
        """Return a copy of self as a dict, suitable for passing to FormatProblem"""
        return dict(self.__dict__)

    def FormatProblem(self, d=None):
        """Return a text string describing the problem.

    Args:
      d: map returned by GetDictToFormat with  with formatting added
    """
        if not d:
            d = self.GetDictToFormat()

        output_error_text = self.__class__.ERROR_TEXT % d
        if ("reason" in d) and d["reason"]:
            return "%s\n%s" % (output_error_text, d["reason"])
        else:
            return output_error_text

    def FormatContext(self):
        """Return a text string describing the context"""
        text = ""
        if hasattr(self, "feed_name"):
            text += "In feed '%s': " % self.feed_name
        if hasattr(self, "file_name"):
            text += self.file_name
        if hasattr(self, "row_num"):
            text += ":%i" % self.row_num
        if hasattr(self, "column_name"):
            text += " column %s" % self.column_name
        return text


class MissingFile(ExceptionWithContext):
    ERROR_TEXT = "File %(file_name)s is not found"


class EmptyFile(ExceptionWithContext):
    ERROR_TEXT = "File %(file_name)s is empty"


class UnknownFile(ExceptionWithContext):
    ERROR_TEXT = (
        "The file named %(file_name)s was not expected.\n"
        "It is not part of any table the merger knows about and will not "
        "be copied into the merged feed."
    )


class FeedNotFound(ExceptionWithContext):
    ERROR_TEXT = "Couldn't find a feed named %(feed_name)s"


class UnknownFormat(ExceptionWithContext):
    ERROR_TEXT = (
        "The feed named %(feed_name)s had an unknown format:\n"
        "feeds should be either .zip files or directories."
    )


class FileFormat(ExceptionWithContext):
    ERROR_TEXT = (
        "Files must be encoded in utf-8 and may not contain "
        "any null bytes (0x00). %(file_name)s %(problem)s."
    )


class MissingColumn(ExceptionWithContext):
    ERROR_TEXT = "Missing column %(column_name)s in file %(file_name)s"


class UnrecognizedColumn(ExceptionWithContext):
    ERROR_TEXT = (
        "Unrecognized column %(column_name)s in file %(file_name)s. "
        "Its values are carried into the merged feed unchanged."
    )


class CsvSyntax(ExceptionWithContext):
    ERROR_TEXT = "%(description)s"


class DuplicateColumn(ExceptionWithContext):
    ERROR_TEXT = (
        "Column %(header)s appears %(count)i times in file %(file_name)s"
    )


class DuplicateID(ExceptionWithContext):
    ERROR_TEXT = "Duplicate ID %(value)s in column %(column_name)s"


class MergeProblemWithContext(ExceptionWithContext):
    """The base exception class for problems found while merging.

    Attributes:
      ERROR_TEXT: The text used for generating the problem message.
      FATAL: True if the merge must stop as soon as this problem is reported.
    """

    def __init__(self, problem_type=TYPE_WARNING, **kwargs):
        """Initialise the exception object.

        Args:
          problem_type: The problem severity. This should be set to one of the
                        constants in feedmerge.errors.
          kwargs: Keyword arguments to be saved as instance attributes.
        """
        kwargs["type"] = problem_type
        ExceptionWithContext.__init__(self, None, None, **kwargs)


class InvalidMergeInput(MergeProblemWithContext):
    FATAL = True
    ERROR_TEXT = "The feeds can not be merged."


class BlockingErrors(MergeProblemWithContext):
    FATAL = True
    ERROR_TEXT = (
        "The feed %(feed_name)s has blocking errors and can not be merged. "
        "Feeds to merge must load without any errors."
    )

    def FormatContext(self):
        return ""


class MissingTable(MergeProblemWithContext):
    FATAL = True
    ERROR_TEXT = "The feed %(feed_name)s has no %(file_name)s table."


class AmbiguousFeedOrder(MergeProblemWithContext):
    FATAL = True
    ERROR_TEXT = (
        "The feeds %(feed_name_a)s and %(feed_name_b)s both start on "
        "%(start_date)s so neither of them can be taken as the active feed."
    )


class TripSignatureMismatch(MergeProblemWithContext):
    FATAL = True
    ERROR_TEXT = (
        "Trip %(trip_id)s is in both %(active_feed)s and %(future_feed)s "
        "but its stop times differ. A trip id can only be shared by the two "
        "feeds when it runs the same stops at the same times."
    )


class AmbiguousServicePeriod(MergeProblemWithContext):
    FATAL = True
    ERROR_TEXT = (
        "Service %(service_id)s of feed %(feed_name)s can't be carried into "
        "the merged feed:"
    )


class SameIdButNotMerged(MergeProblemWithContext):
    ERROR_TEXT = (
        "There is an entity with %(column_name)s '%(id)s' in both feeds "
        "but they differ. The one from %(feed_name)s was renamed to "
        "'%(new_id)s'."
    )


class AgencyIdGenerated(MergeProblemWithContext):
    ERROR_TEXT = (
        "An agency without agency_id was given the generated id "
        "'%(agency_id)s'."
    )


class ServicePeriodTruncated(MergeProblemWithContext):
    ERROR_TEXT = (
        "The end date of service %(service_id)s was moved from "
        "%(end_date)s to %(new_end_date)s so it doesn't overlap the "
        "following feed."
    )


class CalendarDatesDropped(MergeProblemWithContext):
    ERROR_TEXT = (
        "%(count)d calendar date(s) of service %(service_id)s after "
        "%(cutoff)s were dropped because they are covered by the following "
        "feed."
    )


class ServicePeriodDropped(MergeProblemWithContext):
    ERROR_TEXT = (
        "Service %(service_id)s of feed %(feed_name)s was dropped from the "
        "merged feed:"
    )


class ServiceUnused(MergeProblemWithContext):
    ERROR_TEXT = "Service %(service_id)s isn't used by any trip"


class ReferentialIntegrity(MergeProblemWithContext):
    ERROR_TEXT = (
        "The value '%(value)s' in column %(column_name)s of %(file_name)s "
        "does not exist in %(target)s."
    )


class WrongNumberOfFields(MergeProblemWithContext):
    ERROR_TEXT = (
        "Row %(row_num)d of %(file_name)s has %(found)d fields but the "
        "table has %(expected)d columns."
    )


default_problem_reporter = ProblemReporter(ExceptionProblemAccumulator())

# Add a default handler to send log messages to console
console = logging.StreamHandler()
console.setLevel(logging.WARNING)
log = logging.getLogger("feedmerge")
log.addHandler(console)
