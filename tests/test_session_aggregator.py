import os
import sys
import threading
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_timer import ManualScheduler
from session_aggregator import AggregatorState, WorkoutSessionAggregator
from workout_machine import Phase
from workout_models import Exercise, Feeling


def two_exercises():
    return [
        Exercise(id=10, exercise_name="Bench Press", sets=2, reps="8", rest_seconds=30, order_index=0),
        Exercise(id=11, exercise_name="Plank", duration_minutes=1, order_index=1),
    ]


class AggregatorScenarioTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.scheduler = ManualScheduler()
        self.agg = WorkoutSessionAggregator(
            two_exercises(), workout_id=7, scheduler=self.scheduler
        )

    def test_two_exercise_walkthrough(self) -> None:
        agg = self.agg
        self.assertEqual(agg.phase, Phase.ready)
        agg.start_set()
        self.assertEqual(agg.complete_set(), Phase.resting)
        self.assertEqual(agg.timer.remaining, 30)
        self.scheduler.advance(30)
        self.assertEqual(agg.phase, Phase.ready)
        self.assertEqual(agg.current_set, 2)
        agg.start_set()
        agg.complete_set()
        self.scheduler.advance(30)
        self.assertEqual(agg.phase, Phase.logging)
        agg.update_log("weight_used", "60")
        self.assertTrue(agg.has_changes)
        self.assertTrue(agg.advance())
        self.assertEqual(agg.current_index, 1)
        self.assertEqual(agg.phase, Phase.ready)
        self.assertFalse(agg.is_workout_complete())

        agg.start_set()
        agg.complete_set()
        self.assertEqual(agg.timer.remaining, 60)
        self.scheduler.advance(60)
        self.assertEqual(agg.phase, Phase.logging)
        agg.advance()
        self.assertTrue(agg.is_workout_complete())
        self.assertEqual(agg.state, AggregatorState.summary)

        record = agg.finalize(Feeling.hard, "good", "2024-05-01")
        self.assertTrue(record.workout_fully_completed)
        self.assertTrue(record.all_exercises_completed)
        self.assertTrue(record.side_effects.mark_workout_completed)
        self.assertEqual(record.side_effects.completed_exercise_ids, (10, 11))
        self.assertEqual(
            [log.exercise_id for log in record.per_exercise_logs], [10, 11]
        )
        self.assertEqual(record.per_exercise_logs[0].weight_used, 60.0)
        self.assertEqual(record.to_dict()["overall_feeling"], "hard")
        self.assertEqual(agg.state, AggregatorState.saved)
        self.assertEqual(self.scheduler.active_calls, [])

    def test_skip_rest_at_45_seconds(self) -> None:
        agg = WorkoutSessionAggregator(
            [Exercise(id=1, exercise_name="Row", sets=3, rest_seconds=60)],
            scheduler=self.scheduler,
        )
        agg.start_set()
        agg.complete_set()
        self.scheduler.advance(15)
        self.assertEqual(agg.timer.remaining, 45)
        agg.skip_rest()
        self.assertEqual(agg.phase, Phase.ready)
        self.assertEqual(agg.current_set, 2)
        self.assertEqual(self.scheduler.active_calls, [])

    def test_navigate_to_completed_exercise_shows_log(self) -> None:
        agg = self.agg
        agg.skip_to_logging()
        agg.update_log("weight_used", 42.5)
        agg.advance()
        agg.navigate(0)
        self.assertEqual(agg.phase, Phase.logging)
        self.assertEqual(agg.snapshot()["current_log"]["weight_used"], 42.5)

    def test_partial_finalize_drops_incomplete(self) -> None:
        agg = self.agg
        agg.skip_to_logging()
        agg.advance()
        agg.update_log("weight_used", "20", exercise_id=11)
        self.assertEqual(agg.pending_exercises(), [11])
        record = agg.finalize("easy")
        self.assertFalse(record.workout_fully_completed)
        self.assertFalse(record.side_effects.mark_workout_completed)
        self.assertEqual(record.side_effects.completed_exercise_ids, (10,))
        self.assertEqual([l.exercise_id for l in record.per_exercise_logs], [10])

    def test_finalize_twice_rejected(self) -> None:
        self.agg.finalize()
        with self.assertRaises(ValueError):
            self.agg.finalize()
        with self.assertRaises(ValueError):
            self.agg.start_set()

    def test_record_does_not_follow_later_edits(self) -> None:
        agg = self.agg
        agg.skip_to_logging()
        agg.update_log("notes", "first")
        agg.advance()
        record = agg.finalize()
        agg.logs[10].notes = "changed"
        self.assertEqual(record.per_exercise_logs[0].notes, "first")

    def test_completion_stays_true(self) -> None:
        agg = self.agg
        for _ in range(2):
            agg.skip_to_logging()
            agg.advance()
        self.assertTrue(agg.is_workout_complete())
        agg.navigate(0)
        self.assertEqual(agg.state, AggregatorState.in_progress)
        self.assertTrue(agg.is_workout_complete())
        agg.update_log("reps_completed", "9")
        self.assertTrue(agg.is_workout_complete())

    def test_advance_on_last_index_goes_to_summary(self) -> None:
        agg = self.agg
        agg.navigate(1)
        agg.skip_to_logging()
        agg.advance()
        self.assertEqual(agg.state, AggregatorState.summary)
        self.assertFalse(agg.is_workout_complete())
        self.assertEqual(agg.completed_count(), 1)

    def test_advance_requires_logging(self) -> None:
        self.assertFalse(self.agg.advance())
        self.assertEqual(self.agg.current_index, 0)

    def test_navigate_out_of_range(self) -> None:
        with self.assertRaises(IndexError):
            self.agg.navigate(5)

    def test_navigate_cancels_rest(self) -> None:
        agg = self.agg
        agg.start_set()
        agg.complete_set()
        agg.navigate(1)
        self.assertEqual(self.scheduler.active_calls, [])
        self.scheduler.advance(30)
        self.assertEqual(agg.current_index, 1)
        self.assertEqual(agg.phase, Phase.ready)

    def test_previous(self) -> None:
        self.agg.previous()
        self.assertEqual(self.agg.current_index, 0)
        self.agg.navigate(1)
        self.agg.previous()
        self.assertEqual(self.agg.current_index, 0)

    def test_invalid_input_coerced(self) -> None:
        log = self.agg.update_log("weight_used", "heavy")
        self.assertEqual(log.weight_used, 0.0)
        log = self.agg.update_log("sets_completed", "-3")
        self.assertEqual(log.sets_completed, 0)
        with self.assertRaises(ValueError):
            self.agg.update_log("tempo", "3-1-1")

    def test_unknown_feeling(self) -> None:
        with self.assertRaises(ValueError):
            self.agg.finalize("tired")
        self.assertEqual(self.agg.state, AggregatorState.in_progress)

    def test_previous_rejected_when_closed(self) -> None:
        self.agg.discard()
        with self.assertRaises(ValueError):
            self.agg.previous()
        saved = WorkoutSessionAggregator(two_exercises(), scheduler=ManualScheduler())
        saved.finalize()
        with self.assertRaises(ValueError):
            saved.previous()

    def test_failed_persist_keeps_session_open(self) -> None:
        agg = self.agg
        agg.skip_to_logging()
        agg.update_log("weight_used", "80")
        agg.advance()

        def broken(record):
            raise RuntimeError("disk full")

        with self.assertRaises(RuntimeError):
            agg.finalize(persist=broken)
        self.assertEqual(agg.state, AggregatorState.in_progress)
        self.assertIsNone(agg.record)
        stored = []
        record = agg.finalize(persist=lambda r: stored.append(r) or 42)
        self.assertEqual(stored, [record])
        self.assertEqual(agg.session_id, 42)
        self.assertEqual(agg.state, AggregatorState.saved)
        self.assertEqual(record.per_exercise_logs[0].weight_used, 80.0)

    def test_discard(self) -> None:
        agg = self.agg
        agg.start_set()
        agg.complete_set()
        agg.discard()
        self.assertEqual(self.scheduler.active_calls, [])
        with self.assertRaises(ValueError):
            agg.finalize()
        self.assertEqual(agg.tick(), Phase.resting)

    def test_snapshot(self) -> None:
        snap = self.agg.snapshot()
        self.assertEqual(snap["workout_id"], 7)
        self.assertEqual(snap["state"], "in-progress")
        self.assertEqual(snap["exercise_count"], 2)
        self.assertEqual(snap["total_sets"], 2)
        self.assertEqual(snap["rest_seconds"], 30)
        self.assertEqual(snap["timer"]["display"], "0:00")
        self.assertEqual(snap["completion"], {"10": False, "11": False})


class AggregatorSeedingTestCase(unittest.TestCase):
    def test_logs_seeded_from_plan(self) -> None:
        agg = WorkoutSessionAggregator(two_exercises())
        log = agg.logs[10]
        self.assertEqual(log.sets_completed, 2)
        self.assertEqual(log.reps_completed, "8")
        self.assertEqual(log.weight_used, 0.0)
        self.assertEqual(agg.logs[11].duration_minutes, 1)

    def test_logs_seeded_from_previous_session(self) -> None:
        previous = {
            10: {"weight_used": 80.0, "sets_completed": 2, "reps_completed": "6", "notes": "hard"}
        }
        agg = WorkoutSessionAggregator(two_exercises(), previous)
        log = agg.logs[10]
        self.assertEqual(log.weight_used, 80.0)
        self.assertEqual(log.reps_completed, "6")
        self.assertEqual(log.notes, "hard")
        self.assertEqual(agg.logs[11].weight_used, 0.0)

    def test_orders_by_order_index(self) -> None:
        exercises = list(reversed(two_exercises()))
        agg = WorkoutSessionAggregator(exercises)
        self.assertEqual(agg.current_exercise.id, 10)

    def test_completed_workout_opens_in_summary(self) -> None:
        done = [
            Exercise(id=1, exercise_name="Squat", sets=1, completed=True),
            Exercise(id=2, exercise_name="Lunge", sets=1, completed=True, order_index=1),
        ]
        agg = WorkoutSessionAggregator(done)
        self.assertEqual(agg.state, AggregatorState.summary)
        self.assertEqual(agg.phase, Phase.logging)

    def test_empty_workout_rejected(self) -> None:
        with self.assertRaises(ValueError):
            WorkoutSessionAggregator([])


class AggregatorThreadingTestCase(unittest.TestCase):
    def test_concurrent_ticks_and_edits(self) -> None:
        agg = WorkoutSessionAggregator(
            [Exercise(id=1, exercise_name="Row", sets=50, rest_seconds=1000)]
        )
        agg.start_set()
        agg.complete_set()

        def ticker():
            for _ in range(200):
                agg.tick()

        def editor():
            for i in range(200):
                agg.update_log("reps_completed", str(i))

        threads = [threading.Thread(target=ticker), threading.Thread(target=editor)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(agg.timer.remaining, 800)
        self.assertEqual(agg.logs[1].reps_completed, "199")


if __name__ == "__main__":
    unittest.main()
