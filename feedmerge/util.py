#!/usr/bin/python3

# Copyright (C) 2009 Google Inc.
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

import datetime
import optparse
import re
import sys

from .errors import Error


class OptionParserLongError(optparse.OptionParser):
    """OptionParser subclass that includes list of options above error message."""

    def error(self, msg):
        print(self.format_help(), file=sys.stderr)
        print(
            "\n\n%s: error: %s\n\n" % (self.get_prog_name(), msg),
            file=sys.stderr,
        )
        sys.exit(2)


def RunWithCrashHandler(f):
    try:
        exit_code = f()
        sys.exit(exit_code)
    except (SystemExit, KeyboardInterrupt):
        raise
    except Exception:
        import inspect
        import traceback

        # Save trace and exception now. These calls look at the most recently
        # raised exception. The code that makes the report might trigger other
        # exceptions.
        original_trace = inspect.trace(3)[1:]
        formatted_exception = traceback.format_exception_only(
            *(sys.exc_info()[:2])
        )

        apology = """Yikes, the program threw an unexpected exception!

Hopefully a complete report has been saved to feedmergecrash.txt,
though if you are seeing this message we've already disappointed you once
today. Please include the report when you file an issue. Sorry!

"""
        dashes = "%s\n" % ("-" * 60)
        dump = []
        dump.append(apology)
        dump.append(dashes)
        try:
            from .version import __version__

            dump.append("feedmerge version %s\n\n" % __version__)
        except ImportError:
            # Oh well, guess we won't put the version in the report
            pass

        for (
            frame_obj,
            filename,
            line_num,
            fun_name,
            context_lines,
            context_index,
        ) in original_trace:
            dump.append(
                'File "%s", line %d, in %s\n' % (filename, line_num, fun_name)
            )
            if context_lines:
                for (i, line) in enumerate(context_lines):
                    if i == context_index:
                        dump.append(" --> %s" % line)
                    else:
                        dump.append("     %s" % line)
            for local_name, local_val in list(frame_obj.f_locals.items()):
                try:
                    truncated_val = str(local_val)[0:500]
                except Exception as e:
                    dump.append("    Exception in str(%s): %s" % (local_name, e))
                else:
                    if len(truncated_val) >= 500:
                        truncated_val = "%s..." % truncated_val[0:499]
                    dump.append("    %s = %s\n" % (local_name, truncated_val))
            dump.append("\n")

        dump.append("".join(formatted_exception))

        with open("feedmergecrash.txt", "w") as crash_file:
            crash_file.write("".join(dump))

        print("".join(dump))
        print()
        print(dashes)
        print(apology)
        sys.exit(127)


def IsEmpty(value):
    return value is None or (isinstance(value, str) and not value.strip())


def TimeToSecondsSinceMidnight(time_string):
    """Convert HHH:MM:SS into seconds since midnight.

    For example "01:02:03" returns 3723. The leading zero of the hours may be
    omitted. HH may be more than 23 if the time is on the following day."""
    m = re.match(r"(\d{1,3}):([0-5]\d):([0-5]\d)$", time_string)
    # ignored: matching for leap seconds
    if not m:
        raise Error('Bad HH:MM:SS "%s"' % time_string)
    return int(m.group(1)) * 3600 + int(m.group(2)) * 60 + int(m.group(3))


def DateStringToDateObject(date_string):
    """Return a date object for a string "YYYYMMDD"."""
    return datetime.date(
        int(date_string[0:4]), int(date_string[4:6]), int(date_string[6:8])
    )


def DateObjectToString(date_object):
    return date_object.strftime("%Y%m%d")


def DayBefore(date_string):
    """Return the YYYYMMDD string of the day before date_string."""
    one_day_delta = datetime.timedelta(days=1)
    return DateObjectToString(
        DateStringToDateObject(date_string) - one_day_delta
    )


def IsValidDate(date_string):
    if not re.match(r"^\d{8}$", date_string or ""):
        return False
    try:
        DateStringToDateObject(date_string)
    except ValueError:
        return False
    return True


def CleanName(name):
    """Replace every character of name that can't appear in an id with "_"."""
    return re.sub(r"\W", "_", name or "")
