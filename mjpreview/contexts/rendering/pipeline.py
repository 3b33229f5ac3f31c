"""
MJML render pipeline.

Takes a RenderContext through three ordered stages:

1. Template expansion (Jinja2, strict undefined, autoescaped)
2. Localization (style block preserved, apostrophes unescaped, translated)
3. MJML compilation, then link post-processing on success

Each stage may fail and short-circuits the rest. Failures never escape as
exceptions: render() always returns a RenderResult.
"""

import time
import traceback
from typing import Any, Callable, Dict, Mapping, Optional

from mjpreview.contexts.rendering.compiler import (
    CompilerOutput,
    MarkupCompiler,
    MjmlCliCompiler,
    compile_async,
    compiler_options_for,
)
from mjpreview.contexts.rendering.exceptions import (
    EmptyOutputError,
    LocalizationEvaluationError,
    MarkupCompilationError,
    RenderPipelineError,
    TemplateExpansionError,
)
from mjpreview.contexts.rendering.links import fix_links, resolve_local_resource
from mjpreview.contexts.rendering.localization import (
    JinjaLocalizationStage,
    LocalizationStage,
    localize,
)
from mjpreview.contexts.rendering.logger import (
    log_render_result,
    log_render_start,
    log_stage_failure,
)
from mjpreview.contexts.rendering.results import (
    CompileError,
    RenderContext,
    RenderFailure,
    RenderResult,
    RenderSuccess,
)
from mjpreview.contexts.rendering.template_expansion import expand_template


def failure_from_exception(error: BaseException) -> RenderFailure:
    """
    Convert a stage exception into its RenderFailure variant.

    This is the only place error shapes are inspected; downstream code
    dispatches on RenderFailure.kind.
    """
    if isinstance(error, TemplateExpansionError):
        detail = f"{error.name}: {error.message}"
        if error.line is not None:
            detail += f"\n  at line {error.line}"
        return RenderFailure.generic(error.message, detail=detail, line=error.line, raw=error)

    if isinstance(error, LocalizationEvaluationError):
        return RenderFailure.generic(error.message, detail=f"{error.name}: {error.message}", raw=error)

    if isinstance(error, (MarkupCompilationError, EmptyOutputError)):
        return RenderFailure.generic(error.message, raw=error)

    # Anything else is a bug in a stage; show the traceback
    detail = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return RenderFailure.generic(f"{type(error).__name__}: {error}", detail=detail, raw=error)


class RenderPipeline:
    """
    Pure render function from RenderContext to RenderResult.

    Args:
        compiler: Markup compiler engine (default: mjml command-line tool)
        localization: Localization stage (default: JinjaLocalizationStage)
        context_defaults: Variables available to every template, under the caller's data
        resolve_resource: (source_path, link) -> URI used by link post-processing

    Attributes:
        render_count: Number of render attempts made (sync and async)
    """

    def __init__(
        self,
        compiler: Optional[MarkupCompiler] = None,
        localization: Optional[LocalizationStage] = None,
        context_defaults: Optional[Mapping[str, Any]] = None,
        resolve_resource: Callable[[str, str], str] = resolve_local_resource,
    ):
        self.compiler = compiler or MjmlCliCompiler()
        self.localization = localization or JinjaLocalizationStage()
        self.context_defaults = dict(context_defaults or {})
        self.resolve_resource = resolve_resource
        self.render_count = 0

    def _template_data(self, ctx: RenderContext) -> Dict[str, Any]:
        return {**self.context_defaults, **ctx.context_data}

    def prepare(self, ctx: RenderContext) -> str:
        """
        Run stages 1 and 2.

        Returns:
            MJML text ready for the markup compiler

        Raises:
            TemplateExpansionError: Stage 1 failed
            LocalizationEvaluationError: Stage 2 failed
        """
        data = self._template_data(ctx)
        expanded = expand_template(ctx.source_text, data, ctx.source_path)
        return localize(expanded, ctx.locale, data, self.localization)

    def finish(self, output: CompilerOutput, mjml: str, ctx: RenderContext) -> RenderResult:
        """
        Turn compiler output into a RenderResult.

        Compiler errors take precedence over any HTML that was also produced.
        """
        if output.errors:
            errors = [
                CompileError(
                    message=d.formatted_message or d.message,
                    line=d.line,
                    raw=d,
                    source_file=d.file_path,
                )
                for d in output.errors
            ]
            return RenderFailure.structured(errors, source=mjml)

        if not output.html:
            raise EmptyOutputError()

        return RenderSuccess(markup=fix_links(output.html, ctx.source_path, self.resolve_resource))

    def _begin(self, ctx: RenderContext) -> float:
        self.render_count += 1
        log_render_start(ctx.source_path, ctx.locale, ctx.minify, ctx.beautify)
        return time.time()

    def _end(self, ctx: RenderContext, result: RenderResult, start_time: float) -> RenderResult:
        log_render_result(ctx.source_path, result, time.time() - start_time)
        return result

    def render(self, ctx: RenderContext) -> RenderResult:
        """Render synchronously. Never raises."""
        start_time = self._begin(ctx)
        try:
            mjml = self.prepare(ctx)
            options = compiler_options_for(ctx.source_path, ctx.minify, ctx.beautify)
            result = self.finish(self.compiler.compile(mjml, options), mjml, ctx)
        except RenderPipelineError as e:
            log_stage_failure(type(e).__name__, e)
            result = failure_from_exception(e)
        except Exception as e:
            log_stage_failure("Render", e)
            result = failure_from_exception(e)
        return self._end(ctx, result, start_time)

    async def render_async(self, ctx: RenderContext) -> RenderResult:
        """
        Render with the markup compiler awaited in a worker thread.

        Stages still run strictly one after another. Never raises.
        """
        start_time = self._begin(ctx)
        try:
            mjml = self.prepare(ctx)
            options = compiler_options_for(ctx.source_path, ctx.minify, ctx.beautify)
            output = await compile_async(self.compiler, mjml, options)
            result = self.finish(output, mjml, ctx)
        except RenderPipelineError as e:
            log_stage_failure(type(e).__name__, e)
            result = failure_from_exception(e)
        except Exception as e:
            log_stage_failure("Render", e)
            result = failure_from_exception(e)
        return self._end(ctx, result, start_time)

    async def __call__(self, ctx: RenderContext) -> RenderResult:
        return await self.render_async(ctx)
