from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, Union

import click

from tjatools.song import Difficulty


def analysis_option(*args: Any, **kwargs: Any) -> Callable:
    return click.option(
        *args, callback=add_to_dict("analysis_options"), expose_value=False, **kwargs
    )


def add_to_dict(
    key: str,
) -> Callable[[click.Context, Union[click.Option, click.Parameter], Any], None]:
    def add_to_key(
        ctx: click.Context, param: Union[click.Option, click.Parameter], value: Any
    ) -> None:
        # Avoid shadowing the analyser's kwargs default values with the
        # default values chosen by click
        assert param.name is not None
        if not parameter_is_a_click_default(ctx, param.name):
            ctx.params.setdefault(key, {})[param.name] = value

    return add_to_key


def parameter_is_a_click_default(
    ctx: click.Context,
    name: str,
) -> bool:
    return ctx.get_parameter_source(name) in (
        click.core.ParameterSource.DEFAULT,
        click.core.ParameterSource.DEFAULT_MAP,
    )


class DifficultyType(click.ParamType):
    """Accepts the same values as the COURSE: header"""

    name = "course"

    def convert(
        self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]
    ) -> Difficulty:
        if isinstance(value, Difficulty):
            return value
        try:
            return Difficulty.from_tja(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


class PositiveDecimal(click.ParamType):
    name = "decimal"

    def convert(
        self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]
    ) -> Decimal:
        if isinstance(value, Decimal):
            number = value
        else:
            try:
                number = Decimal(str(value))
            except InvalidOperation:
                self.fail(f"{value!r} is not a decimal number", param, ctx)

        if not number.is_finite() or number <= 0:
            self.fail(f"{value} is not strictly positive", param, ctx)

        return number
