"""
Team routes. With teams disabled every call answers FEATURE_DISABLED.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Query, status

from orgaccess.features.organizations.dependencies import get_team_manager
from orgaccess.features.organizations.schemas import MemberResponse
from orgaccess.features.teams.schemas import TeamCreate, TeamMemberRequest, TeamResponse, TeamUpdate
from orgaccess.features.teams.service import TeamManager
from orgaccess.features.users.dependencies import get_current_user
from orgaccess.features.users.models import User


router = APIRouter(tags=["teams"])

Teams = Annotated[TeamManager, Depends(get_team_manager)]
CurrentUser = Annotated[User, Depends(get_current_user)]


@router.post("/", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(team_data: TeamCreate, user: CurrentUser, teams: Teams):
    team = await teams.create_team(user.id, team_data.organization_id, team_data.name)
    return TeamResponse.model_validate(team)


@router.get("/", response_model=list[TeamResponse])
async def list_teams(user: CurrentUser, teams: Teams, organization_id: str = Query(...)):
    return [TeamResponse.model_validate(team) for team in await teams.list_teams(user.id, organization_id)]


@router.patch("/{team_id}", response_model=TeamResponse)
async def update_team(team_id: str, team_data: TeamUpdate, user: CurrentUser, teams: Teams):
    return TeamResponse.model_validate(await teams.update_team(user.id, team_id, team_data.name))


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_team(team_id: str, user: CurrentUser, teams: Teams):
    await teams.remove_team(user.id, team_id)


@router.post("/{team_id}/members", response_model=MemberResponse)
async def add_team_member(team_id: str, member_data: TeamMemberRequest, user: CurrentUser, teams: Teams):
    member = await teams.add_team_member(user.id, team_id, member_data.member_id)
    return MemberResponse.from_model(member)


@router.delete("/{team_id}/members/{member_id}", response_model=MemberResponse)
async def remove_team_member(team_id: str, member_id: str, user: CurrentUser, teams: Teams):
    member = await teams.remove_team_member(user.id, team_id, member_id)
    return MemberResponse.from_model(member)
