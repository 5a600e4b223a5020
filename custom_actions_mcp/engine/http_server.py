import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Dict, Optional

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.types import Receive, Scope, Send

from custom_actions_mcp.config import Settings, configure_logging
from custom_actions_mcp.engine import (
    ActionDefinition,
    ActionMCPServer,
    ActionRegistry,
    ActionRunner,
    ActionTestSession,
    ValidationError,
    detect_variables,
    missing_parameters,
    parameter_stubs,
    parse_curl,
    synthesize,
)
from custom_actions_mcp.engine.validation import ValidationResult, check_action


def _validation_response(checked: ValidationResult, message: str) -> JSONResponse:
    return JSONResponse({
        "success": False,
        "message": message,
        "errors": checked.errors,
        "step": checked.step,
    }, status_code=400)


def _error_response(exc: ValidationError) -> JSONResponse:
    return _validation_response(ValidationResult.from_error(exc), str(exc))


class ActionAdminAPI:
    """Starlette handlers used by the action builder

    Args:
        registry: ActionRegistry holding saved actions
        runner: ActionRunner used for test runs
    """

    def __init__(self, registry: ActionRegistry, runner: Optional[ActionRunner] = None):
        self.registry = registry
        self.runner = runner or registry.runner
        # one session per action being edited
        self.test_sessions: Dict[str, ActionTestSession] = {}

    def test_session(self, action_name: str) -> ActionTestSession:
        session = self.test_sessions.get(action_name)
        if session is None:
            session = ActionTestSession(self.runner)
            self.test_sessions[action_name] = session
        return session

    async def add_action(self, request: Request) -> JSONResponse:
        """Register a new action from its JSON definition"""
        try:
            action = ActionDefinition.from_dict(await request.json())
            self.registry.add_action(action)
        except ValidationError as exc:
            logging.warning(f"[ActionHTTP] Rejected action: {exc}")
            return _error_response(exc)
        except Exception as e:
            logging.error(f"[ActionHTTP] Error adding action: {e}")
            return JSONResponse({
                "success": False,
                "message": f"Error adding action: {str(e)}"
            }, status_code=400)

        logging.info(f"[ActionHTTP] Successfully added action '{action.name}'")
        return JSONResponse({
            "success": True,
            "message": f"Successfully added action '{action.name}'",
            "action": action.to_dict(),
        })

    async def update_action(self, request: Request) -> JSONResponse:
        """Replace a saved action; its version is incremented"""
        name = request.path_params["name"]
        try:
            body = await request.json()
            body["name"] = name
            previous = self.registry.get_action(name)
            if previous is not None:
                body.setdefault("isEnabled", previous.is_enabled)
            action = self.registry.update_action(ActionDefinition.from_dict(body))
        except ValidationError as exc:
            return _error_response(exc)
        except KeyError:
            return JSONResponse({
                "success": False,
                "message": f"Action '{name}' not found"
            }, status_code=404)
        except Exception as e:
            logging.error(f"[ActionHTTP] Error updating action: {e}")
            return JSONResponse({
                "success": False,
                "message": f"Error updating action: {str(e)}"
            }, status_code=400)

        return JSONResponse({"success": True, "action": action.to_dict()})

    async def remove_action(self, request: Request) -> JSONResponse:
        name = request.path_params.get("name")
        if self.registry.remove_action(name):
            self.test_sessions.pop(name, None)
            return JSONResponse({
                "success": True,
                "message": f"Successfully removed action '{name}'"
            })
        return JSONResponse({
            "success": False,
            "message": f"Action '{name}' not found"
        }, status_code=404)

    async def toggle_action(self, request: Request) -> JSONResponse:
        """Enable or disable a saved action: {"isEnabled": bool}"""
        name = request.path_params["name"]
        try:
            body = await request.json()
        except Exception as e:
            return JSONResponse({
                "success": False,
                "message": f"Error reading request: {str(e)}"
            }, status_code=400)
        enabled = body.get("isEnabled") if isinstance(body, dict) else None
        if not isinstance(enabled, bool):
            return JSONResponse({
                "success": False,
                "message": "isEnabled must be true or false"
            }, status_code=400)
        try:
            action = self.registry.set_enabled(name, enabled)
        except KeyError:
            return JSONResponse({
                "success": False,
                "message": f"Action '{name}' not found"
            }, status_code=404)
        return JSONResponse({"success": True, "action": action.to_dict()})

    async def list_actions(self, request: Request) -> JSONResponse:
        """List saved actions; ?enabled=true|false filters on the enabled flag"""
        enabled = request.query_params.get("enabled")
        if enabled is not None:
            enabled = enabled.lower() == "true"
        actions = self.registry.list_actions(enabled)
        return JSONResponse({
            "success": True,
            "actions": actions,
            "count": len(actions)
        })

    async def _parse_draft(self, request: Request):
        body = await request.json()
        action = ActionDefinition.from_dict(body.get("action") or {})
        test_args = {k: v for k, v in (body.get("testArgs") or {}).items()}
        return action, test_args

    async def preview_action(self, request: Request) -> JSONResponse:
        """Synthesize the request a test would send, without sending it"""
        try:
            action, test_args = await self._parse_draft(request)
            preview = synthesize(action, test_args, test_mode=True)
        except ValidationError as exc:
            return _error_response(exc)
        except Exception as e:
            logging.error(f"[ActionHTTP] Error building preview: {e}")
            return JSONResponse({
                "success": False,
                "message": f"Error building preview: {str(e)}"
            }, status_code=400)
        return JSONResponse({"success": True, "request": preview.to_dict()})

    async def test_action(self, request: Request) -> JSONResponse:
        """Run a draft action once and report the outcome

        Only the latest test per action counts; an older test still in flight
        is cancelled and answers 409.
        """
        try:
            action, test_args = await self._parse_draft(request)
            checked = check_action(action)
        except Exception as e:
            logging.error(f"[ActionHTTP] Error reading test request: {e}")
            return JSONResponse({
                "success": False,
                "message": f"Error reading test request: {str(e)}"
            }, status_code=400)
        if not checked.ok:
            return _validation_response(checked, "Action definition is invalid")

        session = self.test_session(action.name)
        try:
            result = await session.run_test(action, test_args)
        finally:
            if session.idle and self.test_sessions.get(action.name) is session:
                del self.test_sessions[action.name]
        if result is None:
            return JSONResponse({
                "success": False,
                "superseded": True,
                "message": "A newer test for this action was started"
            }, status_code=409)

        saved = self.registry.get_action(action.name)
        if saved is not None:
            saved.record_test(result)

        return JSONResponse({
            **result.to_dict(),
            "testStatus": action.test_status.value,
            "lastTestedAt": action.last_tested_at.isoformat() if action.last_tested_at else None,
        })

    async def import_curl(self, request: Request) -> JSONResponse:
        try:
            body = await request.json()
            imported = parse_curl(body.get("curl", ""), bool(body.get("includeBrowserHeaders")))
        except ValidationError as exc:
            return _error_response(exc)
        except Exception as e:
            logging.error(f"[ActionHTTP] Error importing cURL: {e}")
            return JSONResponse({
                "success": False,
                "message": f"Error importing cURL: {str(e)}"
            }, status_code=400)
        return JSONResponse({"success": True, **imported.to_dict()})

    async def detect_variables(self, request: Request) -> JSONResponse:
        """Placeholders used by a draft action and stubs for undeclared ones"""
        try:
            body = await request.json()
            action = ActionDefinition.from_dict(body.get("action") or {})
        except Exception as e:
            return JSONResponse({
                "success": False,
                "message": f"Error reading action: {str(e)}"
            }, status_code=400)
        missing = missing_parameters(action)
        return JSONResponse({
            "success": True,
            "detected": sorted(detect_variables(action)),
            "missing": missing,
            "stubs": [p.to_dict() for p in parameter_stubs(missing)],
        })

    async def health(self, request: Request) -> JSONResponse:
        return JSONResponse({
            "status": "healthy",
            "server": "custom-actions-mcp",
            "actions_count": len(self.registry.actions),
            "tools_count": len(self.registry.get_tools())
        })

    def routes(self) -> list:
        return [
            Route("/api/actions", self.add_action, methods=["POST"]),
            Route("/api/actions", self.list_actions, methods=["GET"]),
            Route("/api/actions/test", self.test_action, methods=["POST"]),
            Route("/api/actions/preview", self.preview_action, methods=["POST"]),
            Route("/api/actions/import-curl", self.import_curl, methods=["POST"]),
            Route("/api/actions/detect-variables", self.detect_variables, methods=["POST"]),
            Route("/api/actions/{name}", self.update_action, methods=["PUT"]),
            Route("/api/actions/{name}", self.remove_action, methods=["DELETE"]),
            Route("/api/actions/{name}", self.toggle_action, methods=["PATCH"]),
            Route("/health", self.health, methods=["GET"]),
        ]


def create_app(settings: Settings, registry: Optional[ActionRegistry] = None) -> Starlette:
    """Build the Starlette app: admin API plus the MCP protocol mounted at /"""
    registry = registry or ActionRegistry()
    mcp_server = ActionMCPServer(settings.server_name, registry)
    admin = ActionAdminAPI(registry)

    session_manager = StreamableHTTPSessionManager(
        app=mcp_server.get_server(),
        event_store=None,
        json_response=settings.json_response,
        stateless=settings.stateless,
    )

    async def handle_streamable_http(scope: Scope, receive: Receive, send: Send) -> None:
        """Handle MCP protocol requests via streamable HTTP"""
        await session_manager.handle_request(scope, receive, send)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            host, port = settings.host, settings.port
            logging.info(f"[ActionHTTP] Custom actions MCP server started on {host}:{port}")
            logging.info(f"[ActionHTTP]   - POST http://{host}:{port}/ (MCP protocol)")
            logging.info(f"[ActionHTTP]   - POST/GET http://{host}:{port}/api/actions (Add / list actions)")
            logging.info(f"[ActionHTTP]   - PUT/PATCH/DELETE http://{host}:{port}/api/actions/{{name}} (Update / remove / toggle action)")
            logging.info(f"[ActionHTTP]   - POST http://{host}:{port}/api/actions/test (Test a draft action)")
            logging.info(f"[ActionHTTP]   - GET http://{host}:{port}/health (Health check)")
            if not registry.tools:
                logging.warning("[ActionHTTP] No actions registered yet - use the HTTP API to add some")
            try:
                yield
            finally:
                logging.info("[ActionHTTP] Custom actions MCP server shutting down...")

    app = Starlette(
        routes=admin.routes() + [Mount("/", app=handle_streamable_http)],
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.admin = admin
    return app


def main() -> None:
    """Start the custom actions MCP HTTP server"""
    settings = Settings.from_env()
    configure_logging(settings)
    app = create_app(settings)

    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()


__all__ = [
    "ActionAdminAPI",
    "create_app",
    "main",
]
