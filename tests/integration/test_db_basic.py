from volunteer_manager.common.time import db_now
from volunteer_manager.domain.enums import SubscriptionType, TaskResult
from volunteer_manager.storage.models import Subscription, Task
from volunteer_manager.storage.repositories import SubscriptionRepository, TaskRepository


def test_task_and_subscription_round_trip(session_factory, make_user):
    make_user(7, email="ana@example.com")

    with session_factory() as s:
        task = TaskRepository(s).add(
            Task(task_name="NoopTask", task_params='{"festivalId": 42}', scheduled_date=db_now())
        )
        s.add(
            Subscription(
                user_id=7,
                subscription_type=SubscriptionType.Registration,
                channel_email=True,
            )
        )
        task_id = task.id

    with session_factory() as s:
        stored = TaskRepository(s).get(task_id)
        assert stored.task_name == "NoopTask"
        assert stored.task_params == '{"festivalId": 42}'
        assert stored.invocation_result is None

        assert TaskRepository(s).mark_executed(
            task_id=task_id, result=TaskResult.TaskSuccess, logs="[]", time_ms=1.5
        )

    with session_factory() as s:
        assert TaskRepository(s).get(task_id).invocation_result == TaskResult.TaskSuccess

        [(subscription, user)] = SubscriptionRepository(s).subscribers_for(
            subscription_type=SubscriptionType.Registration, type_id=None
        )
        assert subscription.channel_email is True
        assert subscription.subscription_type_id is None
        assert user.username == "ana@example.com"
