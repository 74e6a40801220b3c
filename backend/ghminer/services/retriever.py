"""
Repository retrieval from the GitHub API into the document store.

Every ``retrieve_*`` method follows the same pattern: look the resource up in
the persister, fetch it from GitHub only when it is missing (or when a refresh
is requested), tag it with its owning repository, store it and log. Running
any of them twice stores nothing new.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote, urlparse

from ghminer.entities import Workflow, WorkflowRun
from ghminer.persistence.base import BasePersister, Document
from ghminer.repositories.project_store import ProjectStore
from ghminer.services.github.http_client import GithubClient
from ghminer.services.github.pagination import num_pages, paged_request

logger = logging.getLogger(__name__)

TOPICS_MEDIA_TYPE = "application/vnd.github.mercy-preview+json"
DEFAULT_BRANCH = "master"


def _with_page(url: str, page: int) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}page={page}"


def _unwrap(pages: Iterable[Any], key: str) -> List[Dict[str, Any]]:
    """Flatten ``{"total_count": .., key: [...]}`` envelopes returned page by page."""
    items: List[Dict[str, Any]] = []
    for page in pages:
        if isinstance(page, dict):
            items.extend(page.get(key) or [])
        elif isinstance(page, list):
            items.extend(page)
    return items


class RepoRetriever:
    def __init__(
        self,
        settings,
        client: GithubClient,
        persister: BasePersister,
        project_store: Optional[ProjectStore] = None,
    ):
        self.settings = settings
        self.client = client
        self.persister = persister
        self.project_store = project_store
        self.max_pages_back = settings.MAX_PAGES_BACK
        self._project_ids: Dict[str, Optional[int]] = {}

    def ghurl(self, path: str, page: int = -1, per_page: int = 100) -> str:
        separator = "&" if "?" in path else "?"
        if page > 0:
            path += f"{separator}page={page}&per_page={per_page}"
        else:
            path += f"{separator}per_page={per_page}"
        return self.settings.GITHUB_API_URL + path

    def _paged(self, url: str, pages: Optional[int] = None, media_type: str = "") -> List[Any]:
        if pages is None:
            pages = self.max_pages_back
        return paged_request(self.client, url, pages, media_type=media_type)

    def _api(self, url: str, media_type: str = "") -> Any:
        return self.client.api_request(url, media_type)

    def _first(self, entity: str, query: Document) -> Optional[Document]:
        found = self.persister.find(entity, query)
        return found[0] if found else None

    # Users and organisations

    def retrieve_user_byusername(self, user: str) -> Optional[Document]:
        stored = self._first("users", {"login": user})
        if stored is not None:
            logger.debug(f"User {user} exists")
            return stored

        u = self._api(self.ghurl(f"users/{user}"))
        if not u:
            return None
        if self._first("users", {"login": u["login"]}) is None:
            self.persister.store("users", u)
            logger.info(f"Added user {user}")
        return u

    def retrieve_user_byemail(self, email: str, name: Optional[str]) -> Optional[Document]:
        """
        Find a user by commit email; fall back to a name search when the
        name has at least two words (a bare login-like name is too ambiguous).
        """
        byemail = self._api(self.ghurl(f"legacy/user/email/{quote(email, safe='')}"))
        login = None
        if byemail and byemail.get("user"):
            login = byemail["user"].get("login")
        elif name and len(name.split()) > 1:
            byname = self._api(self.ghurl(f"legacy/user/search/{quote(name, safe='')}"))
            candidates = (byname or {}).get("users") or []
            for candidate in candidates:
                if candidate.get("name") == name and candidate.get("login"):
                    login = candidate["login"]
                    break

        if login is None:
            logger.debug(f"Cannot find user by email {email}")
            return None

        user = self.retrieve_user_byusername(login)
        if user is not None and not user.get("email"):
            user["email"] = email
            self.persister.upsert("users", {"login": login}, user)
            logger.debug(f"Added email {email} to user {login}")
        return user

    def retrieve_org(self, org: str) -> Optional[Document]:
        return self.retrieve_user_byusername(org)

    def retrieve_orgs(self, user: str) -> List[Document]:
        orgs = self._paged(self.ghurl(f"users/{user}/orgs"))
        return [o for o in (self.retrieve_org(x["login"]) for x in orgs) if o is not None]

    def retrieve_org_members(self, org: str) -> List[Document]:
        members = self._paged(self.ghurl(f"orgs/{org}/members"))
        for member in members:
            login = member["login"]
            if self._first("organization_members", {"org": org, "login": login}) is None:
                self.persister.store("organization_members", {"org": org, "login": login})
                logger.info(f"Added member {login} to organisation {org}")
            self.retrieve_user_byusername(login)
        return self.persister.find("organization_members", {"org": org})

    # Followers

    def _store_follow_edge(self, followed: str, follower: str, payload: Document) -> None:
        query = {"follows": followed, "login": follower}
        if self._first("followers", query) is not None:
            logger.debug(f"Follower {follower} for user {followed} exists")
            return
        edge = dict(payload)
        edge.update(query)
        self.persister.store("followers", edge)
        logger.info(f"Added follower {follower} to {followed}")

    def retrieve_user_followers(self, user: str) -> List[Document]:
        for follower in self._paged(self.ghurl(f"users/{user}/followers")):
            self._store_follow_edge(user, follower["login"], follower)
        return self.persister.find("followers", {"follows": user})

    def retrieve_user_following(self, user: str) -> List[Document]:
        """
        Edges where ``user`` is the follower. Every new edge copies ``user``'s
        follower entry, taken from a stored reverse edge or, failing that,
        from the first followed user's follower list.
        """
        entry: Optional[Document] = None
        for followed in self._paged(self.ghurl(f"users/{user}/following")):
            login = followed["login"]
            if entry is None:
                entry = self._first("followers", {"follows": login, "login": user})
                if entry is None:
                    entry = next(
                        (f for f in self.retrieve_user_followers(login) if f.get("login") == user),
                        None,
                    )
            if entry is None:
                logger.warning(f"No follower entry for {user} in followers of {login}")
                continue

            payload = {k: v for k, v in entry.items() if k != "_id"}
            self._store_follow_edge(login, user, payload)
        return self.persister.find("followers", {"login": user})

    def retrieve_user_follower(self, followed: str, follower: str) -> Optional[Document]:
        stored = self._first("followers", {"follows": followed, "login": follower})
        if stored is not None:
            return stored
        self.retrieve_user_followers(followed)
        return self._first("followers", {"follows": followed, "login": follower})

    # Repository metadata

    def retrieve_repo(self, owner: str, repo: str, refresh: bool = False) -> Optional[Document]:
        stored = self._first("repos", {"owner.login": owner, "name": repo})
        if stored is not None and not refresh:
            logger.debug(f"Repo {owner}/{repo} exists")
            return stored

        r = self._api(self.ghurl(f"repos/{owner}/{repo}"))
        if not r:
            return None

        if refresh:
            self.persister.upsert("repos", {"name": repo, "owner.login": owner}, r)
            logger.info(f"Refreshed repo {owner}/{repo}")
        else:
            self.persister.store("repos", r)
            logger.info(f"Added repo {owner}/{repo}")
        return r

    def retrieve_default_branch(self, owner: str, repo: str, refresh: bool = False) -> Optional[str]:
        retrieved = self.retrieve_repo(owner, repo, refresh)
        if retrieved is None:
            return None
        if retrieved.get("default_branch") is None:
            # Stored before the field existed upstream
            retrieved = self.retrieve_repo(owner, repo, refresh=True)
            if retrieved is None:
                return None
        return retrieved.get("default_branch") or DEFAULT_BRANCH

    def retrieve_languages(self, owner: str, repo: str) -> Dict[str, int]:
        languages = self._api(self.ghurl(f"repos/{owner}/{repo}/languages")) or {}
        languages.pop("etag", None)
        return languages

    def retrieve_master_branch_diff(
        self,
        owner: str,
        repo: str,
        branch: Optional[str],
        parent_owner: str,
        parent_repo: str,
        parent_branch: Optional[str],
    ) -> Optional[Document]:
        branch = branch or self.retrieve_default_branch(owner, repo)
        parent_branch = parent_branch or self.retrieve_default_branch(parent_owner, parent_repo)
        if branch is None or parent_branch is None:
            return None
        return self._api(
            self.settings.GITHUB_API_URL
            + f"repos/{parent_owner}/{parent_repo}/compare/{parent_branch}...{owner}:{branch}"
        )

    def retrieve_topics(self, owner: str, repo: str) -> List[Document]:
        r = self._api(self.ghurl(f"repos/{owner}/{repo}/topics"), TOPICS_MEDIA_TYPE)
        for topic in (r or {}).get("names") or []:
            entry = {"owner": owner, "repo": repo, "topic": topic}
            if self._first("topics", entry) is None:
                self.persister.store("topics", entry)
                logger.info(f"Added topic {owner}/{repo} -> {topic}")
        return self.persister.find("topics", {"owner": owner, "repo": repo})

    # Commits

    def retrieve_commit(self, owner: str, repo: str, sha: str) -> Optional[Document]:
        stored = self._first("commits", {"sha": sha})
        if stored is not None:
            logger.debug(f"Commit {owner}/{repo} -> {sha} exists")
            return stored

        c = self._api(self.ghurl(f"repos/{owner}/{repo}/commits/{sha}"))
        if not c:
            return None

        if self.settings.COMMIT_HANDLING == "trim":
            for f in c.get("files") or []:
                f.pop("patch", None)

        if self._first("commits", {"sha": c["sha"]}) is None:
            self.persister.store("commits", c)
            logger.info(f"Added commit {owner}/{repo} -> {sha}")
        return c

    def retrieve_commits(
        self, owner: str, repo: str, sha: Optional[str] = None, pages: int = -1
    ) -> List[Document]:
        path = f"repos/{owner}/{repo}/commits"
        if sha:
            path += f"?sha={sha}"
        listed = self._paged(self.ghurl(path), pages)
        commits = (self.retrieve_commit(owner, repo, x["sha"]) for x in listed)
        return [c for c in commits if c is not None]

    def retrieve_commit_comments(self, owner: str, repo: str, sha: str) -> List[Document]:
        for comment in self._paged(self.ghurl(f"repos/{owner}/{repo}/commits/{sha}/comments")):
            query = {"commit_id": comment["commit_id"], "id": comment["id"]}
            if self._first("commit_comments", query) is None:
                self.persister.store("commit_comments", comment)
                logger.info(f"Added commit comment {sha} -> {comment['id']}")
        return self.persister.find("commit_comments", {"commit_id": sha})

    def retrieve_commit_comment(
        self, owner: str, repo: str, sha: str, comment_id: int
    ) -> Optional[Document]:
        stored = self._first("commit_comments", {"commit_id": sha, "id": comment_id})
        if stored is not None:
            return stored
        r = self._api(self.ghurl(f"repos/{owner}/{repo}/comments/{comment_id}"))
        if not r:
            logger.warning(f"Could not find commit comment {owner}/{repo} -> {sha}/{comment_id}")
            return None
        self.persister.store("commit_comments", r)
        logger.info(f"Added commit comment {owner}/{repo} -> {sha}/{comment_id}")
        return r

    # Generic repository-bound collections

    def repo_bound_instance(
        self, entity: str, selector: Document, discriminator: str, item_id: Any
    ) -> List[Document]:
        """Find by discriminator, trying the int-coerced value before the raw one."""
        coerced = item_id
        if isinstance(item_id, str) and item_id.lstrip("-").isdigit():
            coerced = int(item_id)

        found = self.persister.find(entity, {**selector, discriminator: coerced})
        if found or coerced is item_id:
            return found
        return self.persister.find(entity, {**selector, discriminator: item_id})

    def repo_bound_items(
        self,
        owner: str,
        repo: str,
        entity: str,
        urls: Iterable[str],
        selector: Document,
        discriminator: str,
        item_id: Any = None,
        refresh: bool = False,
        order: str = "asc",
    ) -> List[Document]:
        """
        Walk each URL page by page (ascending or descending), storing items
        not yet known under ``selector``. When ``item_id`` is given, stop as
        soon as that item has been seen.
        """
        for url in urls:
            total_pages = num_pages(self.client, url)
            page_range = range(1, total_pages + 1)
            if order == "desc":
                page_range = reversed(page_range)

            for page in page_range:
                items = self.client.api_request(_with_page(url, page))
                if not isinstance(items, list):
                    continue

                for x in items:
                    x["repo"] = repo
                    x["owner"] = owner
                    key = x.get(discriminator)
                    instances = self.repo_bound_instance(entity, selector, discriminator, key)

                    if not instances:
                        full = self._api(x["url"]) if x.get("url") else x
                        if not full:
                            logger.warning(f"Could not fetch {entity} {owner}/{repo} -> {key}")
                            continue
                        full["repo"] = repo
                        full["owner"] = owner
                        self.persister.store(entity, full)
                        logger.info(f"Added {entity} {owner}/{repo} -> {key}")
                    elif refresh:
                        for instance in instances:
                            query = {**selector, discriminator: instance[discriminator]}
                            self.persister.upsert(entity, query, x)
                            logger.debug(f"Refreshing {entity} {owner}/{repo} -> {key}")
                    else:
                        logger.debug(f"{entity} {owner}/{repo} -> {key} exists")

                    if item_id is not None and str(key) == str(item_id):
                        return self.repo_bound_instance(entity, selector, discriminator, item_id)

        if item_id is None:
            return self.persister.find(entity, selector)
        return self.repo_bound_instance(entity, selector, discriminator, item_id)

    def repo_bound_item(
        self,
        owner: str,
        repo: str,
        item_id: Any,
        entity: str,
        urls: Iterable[str],
        selector: Document,
        discriminator: str,
        order: str = "asc",
    ) -> Optional[Document]:
        stored = self.repo_bound_instance(entity, selector, discriminator, item_id)
        if not stored:
            stored = self.repo_bound_items(
                owner, repo, entity, urls, selector, discriminator, item_id, False, order
            )
        if not stored:
            logger.warning(f"Could not find {entity} {owner}/{repo} -> {item_id}")
            return None
        return stored[0]

    def _repo_selector(self, owner: str, repo: str) -> Document:
        return {"repo": repo, "owner": owner}

    def _state_urls(self, owner: str, repo: str, resource: str) -> List[str]:
        return [
            self.ghurl(f"repos/{owner}/{repo}/{resource}"),
            self.ghurl(f"repos/{owner}/{repo}/{resource}?state=closed"),
        ]

    # Watchers and forks

    def retrieve_watchers(self, owner: str, repo: str) -> List[Document]:
        return self.repo_bound_items(
            owner, repo, "watchers",
            [self.ghurl(f"repos/{owner}/{repo}/stargazers")],
            self._repo_selector(owner, repo), "login", order="desc",
        )

    def retrieve_watcher(self, owner: str, repo: str, watcher: str) -> Optional[Document]:
        return self.repo_bound_item(
            owner, repo, watcher, "watchers",
            [self.ghurl(f"repos/{owner}/{repo}/stargazers")],
            self._repo_selector(owner, repo), "login", order="desc",
        )

    def retrieve_forks(self, owner: str, repo: str) -> List[Document]:
        return self.repo_bound_items(
            owner, repo, "forks",
            [self.ghurl(f"repos/{owner}/{repo}/forks")],
            self._repo_selector(owner, repo), "id",
        )

    def retrieve_fork(self, owner: str, repo: str, fork_id: Any) -> Optional[Document]:
        return self.repo_bound_item(
            owner, repo, fork_id, "forks",
            [self.ghurl(f"repos/{owner}/{repo}/forks")],
            self._repo_selector(owner, repo), "id",
        )

    # Pull requests

    def retrieve_pull_requests(self, owner: str, repo: str, refresh: bool = False) -> List[Document]:
        return self.repo_bound_items(
            owner, repo, "pull_requests",
            self._state_urls(owner, repo, "pulls"),
            self._repo_selector(owner, repo), "number", refresh=refresh,
        )

    def retrieve_pull_request(self, owner: str, repo: str, pullreq_id: Any) -> Optional[Document]:
        return self.repo_bound_item(
            owner, repo, pullreq_id, "pull_requests",
            self._state_urls(owner, repo, "pulls"),
            self._repo_selector(owner, repo), "number",
        )

    def retrieve_pull_req_commits(self, owner: str, repo: str, pullreq_id: Any) -> List[Document]:
        """Commits of a pull request, fetched from the repository they were pushed to."""
        listed = self._paged(self.ghurl(f"repos/{owner}/{repo}/pulls/{pullreq_id}/commits"))
        commits = []
        for x in listed:
            # .../repos/<owner>/<repo>/commits/<sha>
            parts = urlparse(x.get("url", "")).path.strip("/").split("/")
            head_owner, head_repo = owner, repo
            if "repos" in parts and len(parts) > parts.index("repos") + 2:
                idx = parts.index("repos")
                head_owner, head_repo = parts[idx + 1], parts[idx + 2]
            c = self.retrieve_commit(head_owner, head_repo, x["sha"])
            if c is not None:
                commits.append(c)
        return commits

    def retrieve_pull_request_commit(
        self, pr: Document, owner: str, repo: str, sha: str
    ) -> Optional[Document]:
        head_repo = (pr.get("head") or {}).get("repo") or {}
        head_owner = (head_repo.get("owner") or {}).get("login")
        if head_owner and head_repo.get("name"):
            c = self.retrieve_commit(head_owner, head_repo["name"], sha)
            if c is not None:
                return c
        return self.retrieve_commit(owner, repo, sha)

    def retrieve_pull_req_comments(self, owner: str, repo: str, pullreq_id: Any) -> List[Document]:
        pullreq_id = int(pullreq_id)
        for comment in self._paged(self.ghurl(f"repos/{owner}/{repo}/pulls/{pullreq_id}/comments")):
            comment.update({"owner": owner, "repo": repo, "pullreq_id": pullreq_id})
            query = {"owner": owner, "repo": repo, "pullreq_id": pullreq_id, "id": comment["id"]}
            if self._first("pull_request_comments", query) is None:
                self.persister.store("pull_request_comments", comment)
                logger.info(f"Added pull request comment {owner}/{repo} -> {pullreq_id}/{comment['id']}")
        return self.persister.find(
            "pull_request_comments", {"owner": owner, "repo": repo, "pullreq_id": pullreq_id}
        )

    def retrieve_pull_req_comment(
        self, owner: str, repo: str, pullreq_id: Any, comment_id: int
    ) -> Optional[Document]:
        pullreq_id = int(pullreq_id)
        query = {"owner": owner, "repo": repo, "pullreq_id": pullreq_id, "id": comment_id}
        stored = self._first("pull_request_comments", query)
        if stored is not None:
            return stored
        r = self._api(self.ghurl(f"repos/{owner}/{repo}/pulls/comments/{comment_id}"))
        if not r:
            logger.warning(f"Could not find pull request comment {owner}/{repo} -> {pullreq_id}/{comment_id}")
            return None
        r.update({"owner": owner, "repo": repo, "pullreq_id": pullreq_id})
        self.persister.store("pull_request_comments", r)
        logger.info(f"Added pull request comment {owner}/{repo} -> {pullreq_id}/{comment_id}")
        return r

    # Issues

    def retrieve_issues(self, owner: str, repo: str, refresh: bool = False) -> List[Document]:
        return self.repo_bound_items(
            owner, repo, "issues",
            self._state_urls(owner, repo, "issues"),
            self._repo_selector(owner, repo), "number", refresh=refresh,
        )

    def retrieve_issue(self, owner: str, repo: str, issue_id: Any) -> Optional[Document]:
        return self.repo_bound_item(
            owner, repo, issue_id, "issues",
            self._state_urls(owner, repo, "issues"),
            self._repo_selector(owner, repo), "number",
        )

    def _issue_children(
        self, owner: str, repo: str, issue_id: Any, entity: str, resource: str
    ) -> List[Document]:
        issue_id = int(issue_id)
        for item in self._paged(self.ghurl(f"repos/{owner}/{repo}/issues/{issue_id}/{resource}")):
            item.update({"owner": owner, "repo": repo, "issue_id": issue_id})
            query = {"owner": owner, "repo": repo, "issue_id": issue_id, "id": item["id"]}
            if self._first(entity, query) is None:
                self.persister.store(entity, item)
                logger.info(f"Added {entity} {owner}/{repo} -> {issue_id}/{item['id']}")
            else:
                logger.debug(f"{entity} {owner}/{repo} -> {issue_id}/{item['id']} exists")
        return self.persister.find(entity, {"owner": owner, "repo": repo, "issue_id": issue_id})

    def _issue_child(
        self, owner: str, repo: str, issue_id: Any, item_id: int, entity: str, resource: str
    ) -> Optional[Document]:
        issue_id = int(issue_id)
        query = {"owner": owner, "repo": repo, "issue_id": issue_id, "id": item_id}
        stored = self._first(entity, query)
        if stored is not None:
            return stored
        r = self._api(self.ghurl(f"repos/{owner}/{repo}/issues/{resource}/{item_id}"))
        if not r:
            logger.warning(f"Could not find {entity} {owner}/{repo} -> {issue_id}/{item_id}")
            return None
        r.update({"owner": owner, "repo": repo, "issue_id": issue_id})
        self.persister.store(entity, r)
        logger.info(f"Added {entity} {owner}/{repo} -> {issue_id}/{item_id}")
        return r

    def retrieve_issue_events(self, owner: str, repo: str, issue_id: Any) -> List[Document]:
        return self._issue_children(owner, repo, issue_id, "issue_events", "events")

    def retrieve_issue_event(
        self, owner: str, repo: str, issue_id: Any, event_id: int
    ) -> Optional[Document]:
        return self._issue_child(owner, repo, issue_id, event_id, "issue_events", "events")

    def retrieve_issue_comments(self, owner: str, repo: str, issue_id: Any) -> List[Document]:
        return self._issue_children(owner, repo, issue_id, "issue_comments", "comments")

    def retrieve_issue_comment(
        self, owner: str, repo: str, issue_id: Any, comment_id: int
    ) -> Optional[Document]:
        return self._issue_child(owner, repo, issue_id, comment_id, "issue_comments", "comments")

    def retrieve_issue_labels(self, owner: str, repo: str, issue_id: Any) -> List[Document]:
        return self._paged(self.ghurl(f"repos/{owner}/{repo}/issues/{issue_id}/labels"))

    # Labels and events

    def retrieve_repo_labels(self, owner: str, repo: str) -> List[Document]:
        return self.repo_bound_items(
            owner, repo, "repo_labels",
            [self.ghurl(f"repos/{owner}/{repo}/labels")],
            self._repo_selector(owner, repo), "name",
        )

    def retrieve_repo_label(self, owner: str, repo: str, name: str) -> Optional[Document]:
        return self.repo_bound_item(
            owner, repo, name, "repo_labels",
            [self.ghurl(f"repos/{owner}/{repo}/labels")],
            self._repo_selector(owner, repo), "name",
        )

    def get_event(self, event_id: Any) -> List[Document]:
        return self.persister.find("events", {"id": event_id})

    def get_repo_events(self, owner: str, repo: str) -> List[Document]:
        for e in self._paged(self.ghurl(f"repos/{owner}/{repo}/events")):
            if self.get_event(e["id"]):
                logger.debug(f"Repository event {owner}/{repo} -> {e.get('type')}-{e['id']} already exists")
            else:
                self.persister.store("events", e)
                logger.info(f"Added event for repository {owner}/{repo} -> {e.get('type')}-{e['id']}")
        return self.persister.find("events", {"repo.name": f"{owner}/{repo}"})

    # Workflows

    def _project_id(self, owner: str, repo: str) -> Optional[int]:
        if self.project_store is None:
            return None
        key = f"{owner}/{repo}"
        if key not in self._project_ids:
            project = self.project_store.find_project(owner, repo)
            self._project_ids[key] = project["id"] if project else None
        return self._project_ids[key]

    def retrieve_workflows(self, owner: str, repo: str) -> List[Document]:
        selector = {"owner": owner, "repo": repo}
        existing_ids = {w["github_id"] for w in self.persister.find("workflows", selector)}
        project_id = self._project_id(owner, repo)

        pages = self._paged(self.ghurl(f"repos/{owner}/{repo}/actions/workflows"))
        for item in _unwrap(pages, "workflows"):
            if item["id"] in existing_ids:
                logger.debug(f"Workflow {owner}/{repo} -> {item['id']} exists")
                continue
            workflow = Workflow.from_api(item, owner, repo, project_id)
            self.persister.store("workflows", workflow.to_mongo())
            existing_ids.add(workflow.github_id)
            if self.project_store is not None:
                self.project_store.ensure_workflow(workflow, project_id)
            logger.info(f"Added workflow {owner}/{repo} -> {workflow.name}")

        return self.persister.find("workflows", selector)

    def retrieve_workflow_runs(self, owner: str, repo: str, workflow_id: int) -> List[Document]:
        selector = {"owner": owner, "repo": repo, "workflow_id": workflow_id}
        existing_ids = {r["github_id"] for r in self.persister.find("workflow_runs", selector)}
        project_id = self._project_id(owner, repo)
        workflow_row_id = None
        if self.project_store is not None:
            workflow_row_id = self.project_store.find_workflow_id(workflow_id)

        pages = self._paged(self.ghurl(f"repos/{owner}/{repo}/actions/workflows/{workflow_id}/runs"))
        added = 0
        for item in _unwrap(pages, "workflow_runs"):
            if item["id"] in existing_ids:
                continue
            run = WorkflowRun.from_api(item, owner, repo)
            self.retrieve_commit(owner, repo, run.head_sha)
            self.persister.store("workflow_runs", run.to_mongo())
            existing_ids.add(run.github_id)
            if self.project_store is not None:
                self.project_store.ensure_workflow_run(run, workflow_row_id, project_id)
            added += 1

        logger.info(f"Added {added} workflow runs for {owner}/{repo} -> {workflow_id}")
        return self.persister.find("workflow_runs", selector)

    # Full repository

    def retrieve_full_repo(self, owner: str, repo: str) -> bool:
        """Mirror everything the extractor needs for ``owner/repo``."""
        logger.info(f"Retrieving repository {owner}/{repo}")
        if self.retrieve_repo(owner, repo, refresh=True) is None:
            logger.warning(f"Repository {owner}/{repo} not found upstream")
            return False

        self.retrieve_user_byusername(owner)
        self.retrieve_languages(owner, repo)
        self.retrieve_commits(owner, repo, pages=self.max_pages_back)

        for pr in self.retrieve_pull_requests(owner, repo):
            self.retrieve_pull_req_commits(owner, repo, pr["number"])
            self.retrieve_pull_req_comments(owner, repo, pr["number"])

        for issue in self.retrieve_issues(owner, repo):
            self.retrieve_issue_events(owner, repo, issue["number"])
            self.retrieve_issue_comments(owner, repo, issue["number"])

        self.retrieve_repo_labels(owner, repo)
        self.retrieve_topics(owner, repo)
        self.get_repo_events(owner, repo)

        for workflow in self.retrieve_workflows(owner, repo):
            self.retrieve_workflow_runs(owner, repo, workflow["github_id"])

        logger.info(f"Finished retrieving {owner}/{repo}")
        return True
