"""Common command handlers."""

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import Message

from billink.bots.tg.keyboards.reply import BACK_TO_MAIN, get_main_menu
from billink.bots.tg.middlewares.access import RoleAccessMiddleware
from billink.core.actors import Actor, Role

router = Router(name=__name__)

router.message.middleware(RoleAccessMiddleware([Role.ADMIN, Role.CASHIER, Role.ENCODER]))


@router.message(CommandStart())
async def handle_start(message: Message, actor: Actor) -> None:
    """Greets the operator and shows their menu."""
    await message.answer(
        f"Welcome to the Billink console. You are signed in as <b>{actor.role.value}</b>.",
        reply_markup=get_main_menu(actor.role),
    )


@router.message(Command("help"))
async def handle_help(message: Message) -> None:
    """Handler for the /help command."""
    await message.answer(
        "This bot issues water bills, records payments and manages customer credit.\n\n"
        "Use the keyboard below to navigate. /cancel stops the current step."
    )


@router.message(Command("cancel"))
async def handle_cancel(message: Message, state: FSMContext, actor: Actor) -> None:
    await state.clear()
    await message.answer("Cancelled.", reply_markup=get_main_menu(actor.role))


@router.message(F.text == BACK_TO_MAIN)
async def handle_back_to_main_menu(message: Message, actor: Actor) -> None:
    """Returns the user to the main menu."""
    await message.answer("Main menu:", reply_markup=get_main_menu(actor.role))
