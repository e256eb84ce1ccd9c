import strawberry

from wildenergy.graphql.checkins.mutations import CheckInMutation
from wildenergy.graphql.checkins.queries import CheckInQuery
from wildenergy.graphql.registrations.mutations import RegistrationMutation
from wildenergy.graphql.registrations.queries import RegistrationQuery
from wildenergy.graphql.subscriptions.mutations import SubscriptionMutation
from wildenergy.graphql.subscriptions.queries import SubscriptionQuery


@strawberry.type
class Query(RegistrationQuery, CheckInQuery, SubscriptionQuery):
    @strawberry.field
    def hello(self) -> str:
        return "Hello from Wild Energy GraphQL!"


@strawberry.type
class Mutation(RegistrationMutation, CheckInMutation, SubscriptionMutation):
    pass


schema = strawberry.Schema(query=Query, mutation=Mutation)
