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

"""Joins the calendars of two consecutive versions of a feed.

The active feed is the one in effect now and the future feed is the one
which replaces it. The merged feed runs the active feed's services up to the
cutoff, the day before the future feed starts, and the future feed's services
after it. Services of trips listed identically by both feeds are joined into
one service spanning both periods.
"""

import logging
from collections import defaultdict

from . import tables
from . import util
from .scoping import ScopeId

log = logging.getLogger(__name__)


class ServicePlan(object):
    """The calendar tables of a service period merge.

    Attributes:
      strategy: The merge strategy, one of the modes.STRATEGY_* constants.
      cutoff: The last date, as YYYYMMDD, on which active services run.
      rows: A map from calendar family table name to its merged rows.
      trip_service_ids: A map from the id of a trip listed by both feeds to
                        the id of the joined service it uses.
      clones: A list of (active service id, future service id, joined id).
      dropped: A list of (dataset index, service id) of dropped services.
    """

    def __init__(self, strategy, cutoff):
        self.strategy = strategy
        self.cutoff = cutoff
        self.rows = defaultdict(list)
        self.trip_service_ids = {}
        self.clones = []
        self.dropped = []

    def AddRow(self, table_name, row):
        self.rows[table_name].append(row)

    def GetRows(self, table_name):
        return list(self.rows.get(table_name, []))


class _FeedServices(object):
    """The calendar rows and trips of one feed, grouped by service id."""

    def __init__(self, dataset, shadow_tables):
        self.calendar = {}
        for row in dataset.GetRows("calendar"):
            self.calendar[row.get("service_id")] = row
        self.dates = defaultdict(list)
        for row in dataset.GetRows("calendar_dates"):
            self.dates[row.get("service_id")].append(row)
        self.shadows = {}
        for table in shadow_tables:
            self.shadows[table.name] = dict(
                (row.get("service_id"), row) for row in dataset.GetRows(table.name)
            )
        self.service_ids = list(self.calendar)
        self.service_ids.extend(s for s in self.dates if s not in self.calendar)
        self.trips = defaultdict(list)
        self.trip_services = {}
        for trip in dataset.GetRows("trips"):
            self.trips[trip.get("service_id")].append(trip.get("trip_id"))
            self.trip_services[trip.get("trip_id")] = trip.get("service_id")

    def HasService(self, service_id):
        return service_id in self.calendar or service_id in self.dates


class ServicePeriodResolver(object):
    """Computes the ServicePlan of a service period merge."""

    def __init__(
        self,
        feed_merger,
        active_index,
        future_index,
        scope_resolver,
        unified_trip_ids,
        strategy,
    ):
        """Initialise.

        Args:
          feed_merger: The FeedMerger.
          active_index: The index of the active dataset.
          future_index: The index of the future dataset.
          scope_resolver: The IdScopeResolver of the merge. Service ids which
                          are re-pointed to the future feed are recorded in
                          its scope map.
          unified_trip_ids: The ids of trips listed with the same stop times
                            by both feeds.
          strategy: The merge strategy.
        """
        self.feed_merger = feed_merger
        self.problem_reporter = feed_merger.problem_reporter
        self.active_index = active_index
        self.future_index = future_index
        self.scope_resolver = scope_resolver
        self.scope_map = scope_resolver.scope_map
        self.unified_trip_ids = sorted(set(unified_trip_ids))
        self.strategy = strategy

        active = feed_merger.datasets[active_index]
        future = feed_merger.datasets[future_index]
        catalog = active.GetCatalog()
        self.shadow_tables = [
            t
            for t in catalog.GetTablesInFamily(tables.CALENDAR)
            if t.shadow_of == "calendar"
        ]
        self.active = _FeedServices(active, self.shadow_tables)
        self.future = _FeedServices(future, self.shadow_tables)
        self.active_name = feed_merger.GetFeedName(active_index)
        self.future_name = feed_merger.GetFeedName(future_index)
        self.cutoff = util.DayBefore(future.GetDateRange()[0])
        self._repointed = set()

    def Resolve(self):
        """Return the ServicePlan.

        Fatal problems raise through the problem reporter.
        """
        plan = ServicePlan(self.strategy, self.cutoff)
        pairs = self._PairServices()
        active_to_future = dict(pairs)
        future_to_active = dict((f, a) for a, f in pairs)
        unified = set(self.unified_trip_ids)

        for service_id in self.active.service_ids:
            trip_ids = self.active.trips.get(service_id, [])
            if service_id in active_to_future and unified.issuperset(trip_ids):
                log.info(
                    "Service %s of %s continues as a joined service",
                    service_id,
                    self.active_name,
                )
                continue
            if not trip_ids:
                self._Drop(
                    plan, self.active_index, service_id, "It isn't used by any trip."
                )
                continue
            self._KeepActiveService(plan, service_id)

        for service_id in self.future.service_ids:
            trip_ids = self.future.trips.get(service_id, [])
            if service_id not in self._repointed:
                if service_id in future_to_active and unified.issuperset(
                    trip_ids
                ):
                    continue
                if not trip_ids:
                    self._Drop(
                        plan,
                        self.future_index,
                        service_id,
                        "It isn't used by any trip.",
                    )
                    continue
            self._KeepFutureService(plan, service_id)

        for active_id, future_id in pairs:
            self._JoinServices(plan, active_id, future_id)
        for trip_id in self.unified_trip_ids:
            pair = (
                self.active.trip_services.get(trip_id),
                self.future.trip_services.get(trip_id),
            )
            plan.trip_service_ids[trip_id] = self._GetJoinedId(*pair)

        log.info(
            "Service periods joined at %s: %d calendar entries, %d joined "
            "service(s), %d dropped",
            self.cutoff,
            len(plan.rows["calendar"]),
            len(plan.clones),
            len(plan.dropped),
        )
        return plan

    def _PairServices(self):
        """Return the (active, future) service id pairs of the shared trips.

        A service of one feed whose shared trips use several services of the
        other feed can't be joined and is a fatal problem.
        """
        pairs = []
        active_to_future = {}
        future_to_active = {}
        for trip_id in self.unified_trip_ids:
            active_id = self.active.trip_services.get(trip_id)
            future_id = self.future.trip_services.get(trip_id)
            if active_to_future.setdefault(active_id, future_id) != future_id:
                self.problem_reporter.AmbiguousServicePeriod(
                    active_id,
                    self.active_name,
                    "Its trips continue under both service %s and service %s "
                    "of %s."
                    % (active_to_future[active_id], future_id, self.future_name),
                )
            if future_to_active.setdefault(future_id, active_id) != active_id:
                self.problem_reporter.AmbiguousServicePeriod(
                    future_id,
                    self.future_name,
                    "Its trips come from both service %s and service %s of %s."
                    % (future_to_active[future_id], active_id, self.active_name),
                )
            if (active_id, future_id) not in pairs:
                pairs.append((active_id, future_id))
        return pairs

    def _GetJoinedId(self, active_id, future_id):
        if active_id == future_id:
            local_id = future_id
        else:
            local_id = "%s_%s" % (active_id, future_id)
        return ScopeId(
            self.scope_resolver.GetToken(self.future_index),
            local_id,
            self.scope_map.separator,
        )

    def _Drop(self, plan, index, service_id, reason):
        self.problem_reporter.ServicePeriodDropped(
            service_id, self.feed_merger.GetFeedName(index), reason
        )
        plan.dropped.append((index, service_id))

    def _AddShadowRows(self, plan, services, service_id, new_id):
        for table in self.shadow_tables:
            row = services.shadows[table.name].get(service_id)
            if row is not None:
                plan.AddRow(table.name, dict(row, service_id=new_id))

    def _KeepActiveService(self, plan, service_id):
        """Add an active service, ending it on the cutoff."""
        final_id = self.scope_map.Resolve(
            self.active_index, tables.SERVICE_ID, service_id
        )
        calendar = self.active.calendar.get(service_id)
        dates = self.active.dates.get(service_id, [])

        if calendar is not None and calendar.get("start_date", "") > self.cutoff:
            # The whole calendar entry falls within the future feed's period.
            if dates:
                self.problem_reporter.ServicePeriodDropped(
                    service_id,
                    self.active_name,
                    "Its calendar entry starts after %s. Its calendar dates "
                    "are kept as service %s." % (self.cutoff, final_id),
                )
                for row in dates:
                    plan.AddRow("calendar_dates", dict(row, service_id=final_id))
                return
            if self.future.HasService(service_id):
                self.scope_map.Add(
                    self.active_index, tables.SERVICE_ID, service_id, service_id
                )
                self._repointed.add(service_id)
                self.problem_reporter.ServicePeriodDropped(
                    service_id,
                    self.active_name,
                    "Its calendar entry starts after %s. Its trips now use "
                    "service %s of %s."
                    % (self.cutoff, service_id, self.future_name),
                )
                return
            self.problem_reporter.AmbiguousServicePeriod(
                service_id,
                self.active_name,
                "Its calendar entry starts after %s and %s has no service "
                "%s to take its trips." % (self.cutoff, self.future_name, service_id),
            )
            return

        if calendar is not None:
            row = dict(calendar, service_id=final_id)
            end_date = calendar.get("end_date", "")
            if end_date > self.cutoff:
                row["end_date"] = self.cutoff
                self.problem_reporter.ServicePeriodTruncated(
                    service_id, end_date, self.cutoff
                )
            plan.AddRow("calendar", row)
            self._AddShadowRows(plan, self.active, service_id, final_id)

        kept = [d for d in dates if d.get("date", "") <= self.cutoff]
        if len(kept) < len(dates):
            if kept or calendar is not None:
                self.problem_reporter.CalendarDatesDropped(
                    service_id, len(dates) - len(kept), self.cutoff
                )
            else:
                # Dropping every date would leave the trips without service.
                kept = dates
        for row in kept:
            plan.AddRow("calendar_dates", dict(row, service_id=final_id))

    def _KeepFutureService(self, plan, service_id):
        calendar = self.future.calendar.get(service_id)
        if calendar is not None:
            plan.AddRow("calendar", dict(calendar))
            self._AddShadowRows(plan, self.future, service_id, service_id)
        for row in self.future.dates.get(service_id, []):
            plan.AddRow("calendar_dates", dict(row))

    def _JoinServices(self, plan, active_id, future_id):
        """Add the service running active_id then future_id.

        Its calendar entry is a copy of the active one starting on the active
        start date and ending on the future end date. Its calendar dates are
        the active ones up to the cutoff followed by the future ones, with the
        future one winning when both feeds list the same date.
        """
        joined_id = self._GetJoinedId(active_id, future_id)
        active_calendar = self.active.calendar.get(active_id)
        future_calendar = self.future.calendar.get(future_id)
        row = None
        if active_calendar is not None and future_calendar is not None:
            row = dict(active_calendar, service_id=joined_id)
            row["start_date"] = min(
                active_calendar.get("start_date", ""),
                future_calendar.get("start_date", ""),
            )
            row["end_date"] = future_calendar.get("end_date", "")
        elif active_calendar is not None:
            row = dict(active_calendar, service_id=joined_id)
            row["end_date"] = min(active_calendar.get("end_date", ""), self.cutoff)
        elif future_calendar is not None:
            row = dict(future_calendar, service_id=joined_id)
        if row is not None:
            plan.AddRow("calendar", row)
            for table in self.shadow_tables:
                shadow = self.active.shadows[table.name].get(
                    active_id
                ) or self.future.shadows[table.name].get(future_id)
                if shadow is not None:
                    plan.AddRow(table.name, dict(shadow, service_id=joined_id))

        active_dates = self.active.dates.get(active_id, [])
        kept = [d for d in active_dates if d.get("date", "") <= self.cutoff]
        if len(kept) < len(active_dates):
            self.problem_reporter.CalendarDatesDropped(
                active_id, len(active_dates) - len(kept), self.cutoff
            )
        future_dates = self.future.dates.get(future_id, [])
        future_days = set(d.get("date") for d in future_dates)
        for date_row in kept:
            if date_row.get("date") not in future_days:
                plan.AddRow("calendar_dates", dict(date_row, service_id=joined_id))
        for date_row in future_dates:
            plan.AddRow("calendar_dates", dict(date_row, service_id=joined_id))
        plan.clones.append((active_id, future_id, joined_id))
