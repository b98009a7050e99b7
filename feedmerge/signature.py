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

"""Compares trips listed with the same trip_id by two feeds."""

import logging
from collections import defaultdict

from . import util
from .errors import Error

log = logging.getLogger(__name__)


def _SequenceKey(stop_time):
    sequence = stop_time.get("stop_sequence") or ""
    try:
        return (0, int(sequence), sequence)
    except ValueError:
        return (1, 0, sequence)


def _TimeValue(time_string):
    """Return time_string in seconds since midnight, or None if it is blank.

    A time which can't be parsed is returned unchanged so it still compares
    equal to the same text.
    """
    if util.IsEmpty(time_string):
        return None
    try:
        return util.TimeToSecondsSinceMidnight(time_string)
    except Error:
        return time_string


def GetTripSignature(stop_times):
    """Return the signature of a trip.

    The signature is the tuple of (stop_id, arrival seconds, departure
    seconds) of each stop time, ordered by stop_sequence. The sequence numbers
    themselves aren't part of it, so two trips numbering their stops
    differently still have the same signature.

    Args:
      stop_times: An iterable of stop_times row dicts of one trip.

    Returns:
      A tuple.
    """
    return tuple(
        (
            st.get("stop_id") or "",
            _TimeValue(st.get("arrival_time")),
            _TimeValue(st.get("departure_time")),
        )
        for st in sorted(stop_times, key=_SequenceKey)
    )


def GetTripSignatures(dataset, trip_ids):
    """Return a map from each of trip_ids to its signature in dataset."""
    wanted = set(trip_ids)
    stop_times = defaultdict(list)
    for row in dataset.GetRows("stop_times"):
        if row.get("trip_id") in wanted:
            stop_times[row["trip_id"]].append(row)
    return dict(
        (trip_id, GetTripSignature(stop_times.get(trip_id, [])))
        for trip_id in wanted
    )


class TripSignatureComparator(object):
    """Decides whether the trips shared by two feeds are the same trips."""

    def __init__(self, active, future):
        self.active = active
        self.future = future

    def Compare(self, trip_ids):
        """Compare the trips with the given ids in both feeds.

        Args:
          trip_ids: The trip ids listed by both feeds.

        Returns:
          A tuple (matching, mismatched) of sorted trip id lists.
        """
        active_signatures = GetTripSignatures(self.active, trip_ids)
        future_signatures = GetTripSignatures(self.future, trip_ids)
        matching = []
        mismatched = []
        for trip_id in sorted(set(trip_ids)):
            if active_signatures[trip_id] == future_signatures[trip_id]:
                matching.append(trip_id)
            else:
                mismatched.append(trip_id)
        log.info(
            "%d shared trip(s) have the same stop times, %d differ",
            len(matching),
            len(mismatched),
        )
        return matching, mismatched
