from aiogram import Router

from . import billing, new_plan, plans, priorities, start


def setup_routers() -> Router:
    """
    Aggregate and return root router for the bot.
    """

    router = Router(name="root")
    router.include_router(start.router)
    router.include_router(plans.router)
    router.include_router(new_plan.router)
    router.include_router(priorities.router)
    router.include_router(billing.router)
    return router
