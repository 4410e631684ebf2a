import click
import traceback

from .chainable import (
    ChunkPipeline, LogManager, PipelineError, PROCESSORS, build_processor_chain
)

DEFAULT_VIDEO_PATH = 'examples/example_video.mp4'


class ChunkDuration(click.ParamType):
    name = 'seconds'

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            seconds = value
        else:
            try:
                seconds = int(value)
            except ValueError:
                self.fail(f'{value} is not a valid chunk duration. Use a whole number of seconds.', param, ctx)
        if seconds <= 0:
            self.fail(f'Invalid chunk duration: {value}. Must be a positive number of seconds.', param, ctx)
        return seconds


@click.command()
@click.argument('path', type=click.Path(), default=DEFAULT_VIDEO_PATH, required=False)
@click.option('--processor', '-p', 'processors', type=click.Choice(sorted(PROCESSORS)), multiple=True,
              help='Frame processor to run. Repeat to run several on every frame. Default is edge.')
@click.option('--output-dir', '-o', type=click.Path(file_okay=False), default='frames',
              help='Directory for the output images. Must exist unless --mkdir is given. Default is frames.')
@click.option('--chunk-duration', '-c', type=ChunkDuration(), default=2,
              help='Seconds of source video per chunk. Default is 2.')
@click.option('--height', type=click.IntRange(min=1), default=720,
              help='Height of the rescaled frames; width follows the aspect ratio. Default is 720.')
@click.option('--on-error', type=click.Choice(['fail', 'skip']), default='fail',
              help='fail aborts on the first frame error, skip logs it and continues. Default is fail.')
@click.option('--mkdir', 'create_dirs', is_flag=True, default=False,
              help='Create the output directory if it does not exist.')
@click.option('--log-dir', type=click.Path(file_okay=False), default='logs',
              help='Directory for the run log file. Default is logs.')
def main(path, processors, output_dir, chunk_duration, height, on_error, create_dirs, log_dir):
    """Extract frames from PATH at a fixed height and write one processed image per frame."""
    processors = processors or ('edge',)

    LogManager.initialize(log_dir)
    click.echo(f'Logging initialized: {LogManager.get_log_file_path()}')

    try:
        processor = build_processor_chain(processors, output_dir=output_dir, create_dirs=create_dirs)

        click.echo(f'Opening video file: {path}')
        with ChunkPipeline.open(path, chunk_duration=chunk_duration, dest_height=height,
                                on_error=on_error) as pipeline:
            stream = pipeline.select_video_stream()
            width, dest_height = pipeline.target_resolution
            click.echo(f'Video stream #{stream.index}: {stream.width}x{stream.height}, '
                       f'target {width}x{dest_height}, {pipeline.frames_per_chunk} frames per chunk')
            click.echo(f'Processors: {", ".join(p.name for p in processor.chain())}')

            pipeline.run(processor)
            stats = pipeline.stats

        click.echo(f'\nProcessed {stats.frames_processed} frames '
                   f'({stats.chunks_completed} full chunks, {stats.frames_skipped} skipped) into {output_dir}')
        LogManager.log_info('CLI', f'Processing completed successfully: {stats.as_dict()}')
        click.echo(f'Complete log available at: {LogManager.get_log_file_path()}')

    except PipelineError as e:
        LogManager.log_error('CLI', f'Critical processing error: {e}', e)
        click.echo(f'Error log available at: {LogManager.get_log_file_path()}')
        click.echo(f'Error: {e}', err=True)
        click.echo(f'Traceback:\n{traceback.format_exc()}', err=True)
        raise click.Abort()
    finally:
        LogManager.cleanup()


if __name__ == '__main__':
    main()
