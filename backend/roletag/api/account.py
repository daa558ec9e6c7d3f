import logging

from fastapi import APIRouter, Response

from roletag.api.deps import Context
from roletag.schemas.user import AccountResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Account"])


@router.get("/{account}", response_model=AccountResponse)
async def get_account(ctx: Context, response: Response):
    await ctx.load_resource()
    ctx.set_role_tag_header(response)
    return ctx.account
